"""
PE Import Reader
=================

Adapts :mod:`pefile` to the import-descriptor contract of the PE
normalizer: one ``"symbol:library"`` token per named import found in the
regular import directory.

Imports by ordinal carry no name.  They are reported as
``"library#ordinal"`` (no ``:``) so the normalizer can drop them while the
reader still accounts for every thunk.

References:
    - Microsoft. (2024). PE Format -- The .idata Section. Microsoft Learn.
    - Carrera, E. pefile. https://github.com/erocarrera/pefile
"""

from __future__ import annotations

import pefile

from imphash.core.errors import ContainerParseError

_IMPORT_DIRECTORY = pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_IMPORT"]


def _text(raw: bytes | str | None) -> str:
    # Undecodable bytes survive as surrogates and re-encode losslessly.
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8", errors="surrogateescape")


def imported_symbols(data: bytes) -> list[str]:
    """List the import descriptors of a PE image.

    Args:
        data: Complete PE file contents.

    Returns:
        Tokens in import-table order: ``"CreateFileA:KERNEL32.dll"`` for
        named imports, ``"WS2_32.dll#23"`` for ordinal-only imports.

    Raises:
        ContainerParseError: :mod:`pefile` rejected the buffer.
    """
    try:
        pe = pefile.PE(data=data, fast_load=True)
    except pefile.PEFormatError as exc:
        raise ContainerParseError("pe", exc) from exc

    try:
        pe.parse_data_directories(directories=[_IMPORT_DIRECTORY])
        tokens: list[str] = []
        for entry in getattr(pe, "DIRECTORY_ENTRY_IMPORT", []):
            library = _text(entry.dll)
            for imp in entry.imports:
                if imp.name:
                    tokens.append(f"{_text(imp.name)}:{library}")
                else:
                    tokens.append(f"{library}#{imp.ordinal}")
        return tokens
    except pefile.PEFormatError as exc:
        raise ContainerParseError("pe", exc) from exc
    finally:
        pe.close()
