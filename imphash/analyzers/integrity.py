"""
ELF Section Integrity Guard
============================

Rejects ELF inputs whose section headers declare more bytes than the file
holds, before any import extraction runs.  Parsers size reads and
allocations from ``sh_size``; an adversarial value can otherwise drive them
into huge allocations or out-of-bounds reads.

Two bounds are enforced while walking the header table once:

* no single section may be larger than the input, and
* the running total of declared sizes may never exceed the input.

``SHT_NOBITS`` sections (``.bss``) occupy no file bytes but are still
counted, so an ELF whose ``.bss`` outgrows the file is rejected too.
"""

from __future__ import annotations

from typing import Iterable

from imphash.core.errors import MalformedELFSectionsError
from imphash.parsers import elf_reader


def check_section_sizes(sizes: Iterable[int], total_length: int) -> None:
    """Validate declared section sizes against the input length.

    Args:
        sizes: Declared ``sh_size`` values in section-header order.
        total_length: Length of the whole input buffer.

    Raises:
        MalformedELFSectionsError: On the first section that breaks
            either bound.
    """
    running = 0
    for index, size in enumerate(sizes):
        if size > total_length:
            raise MalformedELFSectionsError(index, size, total_length)
        running += size
        if running > total_length:
            raise MalformedELFSectionsError(index, size, total_length, running)


def check_elf(data: bytes) -> None:
    """Run the section-size guard over an ELF buffer.

    Raises:
        MalformedELFSectionsError: Declared sizes exceed the buffer.
        ContainerParseError: The section-header table is unreadable.
    """
    check_section_sizes(elf_reader.iter_section_sizes(data), len(data))
