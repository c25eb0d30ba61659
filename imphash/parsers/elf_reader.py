"""
ELF Import Reader
==================

Adapts :mod:`elftools` (pyelftools) to the two ELF collaborator contracts:

* :func:`iter_section_sizes` -- declared ``sh_size`` of every section header,
  read from the header table only.  Section contents are never touched,
  so the integrity guard can run before anything sizes an allocation
  from these fields.
* :func:`imported_symbols` -- undefined global entries of ``.dynsym``
  paired with the library that provides them.  The library comes from
  GNU symbol versioning: ``.gnu.version`` maps each dynamic symbol to a
  version index and ``.gnu.version_r`` maps that index to the needed
  file.  Unversioned symbols have an empty library.

References:
    - TIS Committee. (1995). ELF Specification, Version 1.2.
    - Linux Standard Base Core Specification -- Symbol Versioning.
    - pyelftools. https://github.com/eliben/pyelftools
"""

from __future__ import annotations

import io
from typing import Iterator

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.gnuversions import GNUVerNeedSection, GNUVerSymSection
from elftools.elf.sections import SymbolTableSection

from imphash.core.errors import ContainerParseError
from imphash.core.models import ImportEntry


def _open(data: bytes) -> ELFFile:
    try:
        return ELFFile(io.BytesIO(data))
    except ELFError as exc:
        raise ContainerParseError("elf", exc) from exc


def _section_header(elf: ELFFile, index: int):
    # ELFFile.get_section() also builds the section object, and some section
    # types read their contents while doing so. Only the raw header is needed
    # here, and the guard must see it before any contents are touched.
    return elf._get_section_header(index)


def iter_section_sizes(data: bytes) -> Iterator[int]:
    """Yield the declared size of each section, in section-header order.

    Raises:
        ContainerParseError: The ELF header or a section header cannot be read.
    """
    elf = _open(data)
    try:
        for index in range(elf.num_sections()):
            header = _section_header(elf, index)
            if header is None:
                raise ContainerParseError(
                    "elf", f"section header {index} lies outside the file"
                )
            yield int(header["sh_size"])
    except ELFError as exc:
        raise ContainerParseError("elf", exc) from exc


def _version_libraries(elf: ELFFile) -> tuple[GNUVerSymSection | None, dict[int, str]]:
    """Return the ``.gnu.version`` section and a version-index -> file map."""
    versym: GNUVerSymSection | None = None
    needed: dict[int, str] = {}
    for section in elf.iter_sections():
        if isinstance(section, GNUVerSymSection):
            versym = section
        elif isinstance(section, GNUVerNeedSection):
            for verneed, vernaux_iter in section.iter_versions():
                for vernaux in vernaux_iter:
                    needed[int(vernaux["vna_other"])] = verneed.name
    return versym, needed


def imported_symbols(data: bytes) -> list[ImportEntry]:
    """Dynamic-symbol imports of an ELF image.

    An image without a ``.dynsym`` section (fully static) imports nothing.

    Raises:
        ContainerParseError: pyelftools rejected the buffer.
    """
    elf = _open(data)
    try:
        dynsym = next(
            (
                section
                for section in elf.iter_sections()
                if isinstance(section, SymbolTableSection)
                and section["sh_type"] == "SHT_DYNSYM"
            ),
            None,
        )
        if dynsym is None:
            return []

        versym, needed = _version_libraries(elf)
        entries: list[ImportEntry] = []
        for index, symbol in enumerate(dynsym.iter_symbols()):
            if index == 0:
                continue
            if symbol["st_info"]["bind"] != "STB_GLOBAL":
                continue
            if symbol["st_shndx"] != "SHN_UNDEF":
                continue
            library = ""
            if versym is not None and index < versym.num_symbols():
                ndx = versym.get_symbol(index)["ndx"]
                if isinstance(ndx, int):
                    library = needed.get(ndx, "")
            entries.append(ImportEntry(library=library, symbol=symbol.name))
        return entries
    except ELFError as exc:
        raise ContainerParseError("elf", exc) from exc
