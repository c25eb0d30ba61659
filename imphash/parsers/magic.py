"""
Magic Number Format Sniffing
=============================

Classifies a buffer into one of the container formats that have an import
normalizer, purely from its leading magic bytes.  Nothing past the magic is
inspected: a buffer that starts with ``MZ`` is routed to the PE path even if
the rest is garbage, and the PE parser is left to reject it.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - TIS Committee. (1995). ELF Specification, Version 1.2.
    - Apple. ``<mach-o/loader.h>`` and ``<mach-o/fat.h>``.
"""

from __future__ import annotations

from dataclasses import dataclass

from imphash.core.errors import UnsupportedFormatError
from imphash.core.models import BinaryFormat


@dataclass(frozen=True, slots=True)
class _Signature:
    """A single magic signature entry.

    Attributes:
        magic: Byte pattern expected at offset 0.
        format: Container format the pattern selects.
        description: Human-readable description.
    """
    magic: bytes
    format: BinaryFormat
    description: str


_SIGNATURES: tuple[_Signature, ...] = (
    _Signature(b"MZ", BinaryFormat.PE, "PE/MS-DOS executable"),
    _Signature(b"\x7fELF", BinaryFormat.ELF, "ELF executable"),
    _Signature(b"\xfe\xed\xfa\xce", BinaryFormat.MACHO, "Mach-O 32-bit"),
    _Signature(b"\xce\xfa\xed\xfe", BinaryFormat.MACHO, "Mach-O 32-bit (reversed)"),
    _Signature(b"\xfe\xed\xfa\xcf", BinaryFormat.MACHO, "Mach-O 64-bit"),
    _Signature(b"\xcf\xfa\xed\xfe", BinaryFormat.MACHO, "Mach-O 64-bit (reversed)"),
    _Signature(b"\xca\xfe\xba\xbe", BinaryFormat.MACHO_FAT, "Mach-O fat binary"),
)

_PREFIX_LENGTH: int = max(len(sig.magic) for sig in _SIGNATURES)


def match_signature(data: bytes) -> _Signature | None:
    """Return the first signature whose magic prefixes *data*, if any."""
    for sig in _SIGNATURES:
        if data.startswith(sig.magic):
            return sig
    return None


def sniff_format(data: bytes) -> BinaryFormat:
    """Classify *data* by its leading bytes.

    Args:
        data: Raw file bytes.

    Returns:
        The matching :class:`BinaryFormat`.

    Raises:
        UnsupportedFormatError: No known magic number matches.
    """
    sig = match_signature(data)
    if sig is None:
        raise UnsupportedFormatError(bytes(data[:_PREFIX_LENGTH]))
    return sig.format


def describe_format(data: bytes) -> str:
    """Human-readable description of *data*'s container, for display."""
    sig = match_signature(data)
    return sig.description if sig is not None else "Unsupported"
