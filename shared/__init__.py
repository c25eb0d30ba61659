"""
PhantomCore Shared Module
=========================

Configuration, structured logging and console presentation used by the
imphash tool.
"""

from shared.config import PhantomConfig, get_config

__all__ = ["PhantomConfig", "get_config"]
