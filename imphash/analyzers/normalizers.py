"""
Import Normalizers
===================

Turns raw import data into the canonical string that gets hashed.  There
is one normalizer per :class:`~imphash.core.models.BinaryFormat`; each is a
pure function of its input, so the order in which a container reports its
imports never changes the output.

Paired form (PE, ELF)::

    advapi32.regopenkeyexa,kernel32.createfilea,kernel32.exitprocess

Libraries sorted, symbols sorted within their library, ``library.symbol``
tokens joined with single commas and no marker between libraries.

Flat form (Mach-O thin and fat)::

    /usr/lib/libSystem.B,_exit,_malloc,_printf

Truncated library names and raw symbol names share one deduplicated,
sorted set.

Casing differs by format.  PE names are case-insensitive on Windows and
are lowercased.  ELF and Mach-O names are kept exactly as written, which
keeps fingerprints compatible with previously published values.

References:
    - Mandiant. (2014). Tracking Malware with Import Hashing.
    - JPCERT/CC. impfuzzy. https://github.com/JPCERTCC/impfuzzy
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from imphash.analyzers.scratch import ScratchPool
from imphash.core.models import ImportEntry, MachOImage

_PE_SUFFIXES: tuple[str, ...] = (".dll", ".sys")
_ELF_MARKER = ".so"
_MACHO_MARKER = ".dylib"


def _truncate_at(name: str, marker: str) -> str:
    # A marker at position 0 is left alone: truncating would yield "".
    idx = name.find(marker)
    return name[:idx] if idx > 0 else name


def _strip_pe_suffix(library: str) -> str:
    for suffix in _PE_SUFFIXES:
        if library.endswith(suffix):
            return library[: -len(suffix)]
    return library


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def group_pe_imports(descriptors: Iterable[str]) -> dict[str, list[str]]:
    """Group ``"symbol:library"`` descriptors by normalized library.

    Descriptors without ``:`` are ordinal-only imports and are skipped.
    """
    groups: dict[str, list[str]] = defaultdict(list)
    for descriptor in descriptors:
        if ":" not in descriptor:
            continue
        parts = descriptor.split(":")
        library = _strip_pe_suffix(parts[1].lower())
        groups[library].append(parts[0].lower())
    return dict(groups)


def group_elf_imports(entries: Iterable[ImportEntry]) -> dict[str, list[str]]:
    """Group ELF imports by library, truncated before its first ``.so``."""
    groups: dict[str, list[str]] = defaultdict(list)
    for entry in entries:
        groups[_truncate_at(entry.library, _ELF_MARKER)].append(entry.symbol)
    return dict(groups)


def collect_macho_names(image: MachOImage, into: set[str] | None = None) -> set[str]:
    """Add an image's truncated library names and raw symbols to a set."""
    names = into if into is not None else set()
    names.update(_truncate_at(lib, _MACHO_MARKER) for lib in image.libraries)
    names.update(image.symbols)
    return names


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def serialize_paired(groups: dict[str, list[str]], pool: ScratchPool) -> str:
    """Serialise library -> symbols groups into comma-joined ``lib.sym`` tokens."""
    with pool.borrow() as buf:
        first = True
        for library in sorted(groups):
            for symbol in sorted(groups[library]):
                if not first:
                    buf.write(",")
                first = False
                buf.write(library)
                buf.write(".")
                buf.write(symbol)
        return buf.getvalue()


def serialize_flat(names: Iterable[str], pool: ScratchPool) -> str:
    """Serialise a name set as a sorted, comma-joined string."""
    with pool.borrow() as buf:
        for idx, name in enumerate(sorted(set(names))):
            if idx:
                buf.write(",")
            buf.write(name)
        return buf.getvalue()


# ---------------------------------------------------------------------------
# Per-format normalizers
# ---------------------------------------------------------------------------

def normalize_pe(descriptors: Iterable[str], pool: ScratchPool) -> str:
    return serialize_paired(group_pe_imports(descriptors), pool)


def normalize_elf(entries: Iterable[ImportEntry], pool: ScratchPool) -> str:
    return serialize_paired(group_elf_imports(entries), pool)


def normalize_macho(image: MachOImage, pool: ScratchPool) -> str:
    return serialize_flat(collect_macho_names(image), pool)


def normalize_macho_fat(slices: Iterable[MachOImage], pool: ScratchPool) -> str:
    """Flat form over the union of every slice's imports."""
    names: set[str] = set()
    for image in slices:
        collect_macho_names(image, names)
    return serialize_flat(names, pool)
