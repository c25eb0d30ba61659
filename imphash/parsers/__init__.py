"""
Imphash Parsers
================

Format sniffing and thin adapters over the third-party container parsers
(pefile, pyelftools, LIEF).
"""
