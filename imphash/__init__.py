"""
PhantomCore Imphash -- Import-Table Fingerprinting
===================================================

Computes import hashes for PE, ELF and Mach-O (thin and fat) binaries:
a canonical, order-independent string of the libraries and symbols a
binary imports, its MD5 (``ImpHash``), the space-padded string
(``ImpString``) and an ssdeep digest of it (``ImpFuzzy``) for
similarity clustering.

Capabilities:
    - Magic-number container detection
    - ELF section-size integrity guard ahead of import parsing
    - Per-format import normalization (PE, ELF, Mach-O, fat Mach-O)
    - Exact and fuzzy import digests, ssdeep similarity scoring
    - Concurrent batch fingerprinting with per-file failure isolation
    - Rich console, JSON and CSV output

References:
    - Mandiant. (2014). Tracking Malware with Import Hashing.
    - JPCERT/CC. (2016). impfuzzy.
    - Kornblum, J. (2006). Context Triggered Piecewise Hashing.
"""

from imphash.core.engine import ImphashEngine, imphash_from_bytes
from imphash.core.errors import (
    ContainerParseError,
    FileTooLargeError,
    ImphashError,
    MalformedELFSectionsError,
    UnsupportedFormatError,
)
from imphash.core.models import BinaryFormat, FileHashResult, ImpHashResult

__version__ = "1.0.0"
__all__ = [
    "BinaryFormat",
    "ContainerParseError",
    "FileHashResult",
    "FileTooLargeError",
    "ImpHashResult",
    "ImphashEngine",
    "ImphashError",
    "MalformedELFSectionsError",
    "UnsupportedFormatError",
    "imphash_from_bytes",
]
