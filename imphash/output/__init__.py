"""
Imphash Output
===============

Rich console display and JSON / CSV report generation.
"""

from imphash.output.console import ImphashConsoleOutput
from imphash.output.report import ImphashReportGenerator

__all__ = ["ImphashConsoleOutput", "ImphashReportGenerator"]
