"""
Imphash Core Module
====================

Engine, data models and error types of the import-hash pipeline.
"""

from imphash.core.engine import ImphashEngine, imphash_from_bytes, iter_targets
from imphash.core.models import (
    BinaryFormat,
    FileHashResult,
    ImpHashResult,
    ImportEntry,
    MachOImage,
    SimilarityResult,
)

__all__ = [
    "BinaryFormat",
    "FileHashResult",
    "ImpHashResult",
    "ImphashEngine",
    "ImportEntry",
    "MachOImage",
    "SimilarityResult",
    "imphash_from_bytes",
    "iter_targets",
]
