"""
Imphash Data Models
====================

Pydantic models for the import-hash pipeline: the closed set of container
formats, raw import entries, the immutable :class:`ImpHashResult` record,
and the per-file records produced by batch runs.

References:
    - Mandiant. (2014). Tracking Malware with Import Hashing.
    - Kornblum, J. (2006). Identifying almost identical files using
      context triggered piecewise hashing. Digital Investigation, 3, 91-97.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class BinaryFormat(str, enum.Enum):
    """Container formats with an import normalizer.

    The set is closed: a buffer matching none of these magics is rejected
    by the sniffer instead of being mapped to an "unknown" member.
    """
    PE = "pe"
    ELF = "elf"
    MACHO = "macho"
    MACHO_FAT = "macho_fat"


# ---------------------------------------------------------------------------
# Raw import data
# ---------------------------------------------------------------------------

class ImportEntry(BaseModel):
    """A (library, symbol) pair exactly as a container reader reports it.

    Attributes:
        library: Library the symbol is bound to; empty when the container
                 does not record one (unversioned ELF symbols).
        symbol: Imported symbol name.
    """
    model_config = ConfigDict(frozen=True)

    library: str = ""
    symbol: str = ""


class MachOImage(BaseModel):
    """Import lists of one Mach-O image (a thin file or one fat slice).

    Attributes:
        cpu: Architecture label of the slice, for display only.
        libraries: Install names of the dylibs the image loads.
        symbols: Names of the symbols it imports, unmodified.
    """
    model_config = ConfigDict(frozen=True)

    cpu: str = ""
    libraries: tuple[str, ...] = ()
    symbols: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Pipeline output
# ---------------------------------------------------------------------------

class ImpHashResult(BaseModel):
    """Fingerprint of one binary's import surface.

    Serialises with the field names ``ImpHash``, ``ImpFuzzy`` and
    ``ImpString`` (``model_dump(by_alias=True)``).

    Attributes:
        imp_hash: 32-character lowercase MD5 hex of the canonical string.
        imp_fuzzy: ssdeep digest of the padded string; empty when the fuzzy
                   hash could not be computed.
        imp_string: Canonical string padded with spaces to at least 4096 bytes.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    imp_hash: str = Field(..., alias="ImpHash", min_length=32, max_length=32)
    imp_fuzzy: str = Field(default="", alias="ImpFuzzy")
    imp_string: str = Field(..., alias="ImpString")

    @property
    def canonical(self) -> str:
        """The canonical string with the trailing padding removed."""
        return self.imp_string.rstrip(" ")


class FileHashResult(BaseModel):
    """Outcome of fingerprinting one file inside a batch.

    Exactly one of :attr:`result` and :attr:`error` is populated.

    Attributes:
        path: Path of the input file.
        size: File size in bytes (0 if it could not be read).
        format: Detected container format, if sniffing succeeded.
        result: The fingerprint on success.
        error: Error message on failure.
        error_kind: Exception class name on failure.
    """
    path: str
    size: int = 0
    format: Optional[BinaryFormat] = None
    result: Optional[ImpHashResult] = None
    error: str = ""
    error_kind: str = ""

    @property
    def ok(self) -> bool:
        return self.result is not None


class SimilarityResult(BaseModel):
    """ssdeep comparison of two fuzzy import hashes.

    Attributes:
        left: Fuzzy hash of the first binary.
        right: Fuzzy hash of the second binary.
        score: Match score in [0, 100]; 0 when either hash is empty.
    """
    left: str = ""
    right: str = ""
    score: int = Field(default=0, ge=0, le=100)
