"""
Mach-O Import Reader
=====================

Adapts :mod:`lief` to the Mach-O collaborator contracts.  LIEF parses both
thin images and fat (universal) containers into a ``FatBinary``; a thin
file simply yields a single slice.

Only ``LC_LOAD_DYLIB`` commands count as imported libraries.  Weak,
re-exported and lazily loaded dylibs are left out.

LIEF recovers what it can from damaged images.  Before handing a buffer
to it, the reader checks the container layout itself and rejects:

* a fat header with no architectures, or an architecture table or slice
  that runs past the end of the buffer,
* a header or load-command area longer than the image,
* a load command whose size is below 8 bytes or overruns the command area,
* symbol, string or indirect-symbol tables outside the image, and
* a dynamic symbol table whose undefined-symbol range exceeds the symbol
  table.

References:
    - Apple. ``<mach-o/loader.h>``, ``<mach-o/fat.h>``.
    - Quarkslab. LIEF -- Library to Instrument Executable Formats.
      https://lief.re/
"""

from __future__ import annotations

import io
import struct

import lief

from imphash.core.errors import ContainerParseError
from imphash.core.models import MachOImage

lief.logging.set_level(lief.logging.LEVEL.ERROR)

_LOAD_DYLIB = lief.MachO.LoadCommand.TYPE.LOAD_DYLIB

# magic -> (byte order, header size, nlist entry size)
_THIN_LAYOUTS: dict[bytes, tuple[str, int, int]] = {
    b"\xfe\xed\xfa\xce": (">", 28, 12),
    b"\xce\xfa\xed\xfe": ("<", 28, 12),
    b"\xfe\xed\xfa\xcf": (">", 32, 16),
    b"\xcf\xfa\xed\xfe": ("<", 32, 16),
}
_FAT_HEADER_SIZE = 8
_FAT_ARCH_SIZE = 20
_LC_SYMTAB = 0x2
_LC_DYSYMTAB = 0xB
_SYMTAB_SIZE = 24
_DYSYMTAB_SIZE = 80


def _to_image(binary: lief.MachO.Binary) -> MachOImage:
    return MachOImage(
        cpu=str(binary.header.cpu_type).rsplit(".", 1)[-1],
        libraries=tuple(
            lib.name for lib in binary.libraries if lib.command == _LOAD_DYLIB
        ),
        symbols=tuple(sym.name for sym in binary.imported_symbols),
    )


# ---------------------------------------------------------------------------
# Layout checks
# ---------------------------------------------------------------------------

def _check_range(format_name: str, what: str, offset: int, size: int, limit: int) -> None:
    if offset + size > limit:
        raise ContainerParseError(
            format_name, f"{what} ends at {offset + size}, past the {limit}-byte image"
        )


def check_image_layout(image: bytes | memoryview, format_name: str = "macho") -> None:
    """Validate the header, load commands and symbol tables of a thin image.

    Raises:
        ContainerParseError: The image is truncated or its tables point
            outside it.
    """
    limit = len(image)
    layout = _THIN_LAYOUTS.get(bytes(image[:4]))
    if layout is None:
        raise ContainerParseError(format_name, f"invalid Mach-O magic {bytes(image[:4]).hex()}")
    order, header_size, nlist_size = layout
    if limit < header_size:
        raise ContainerParseError(format_name, "truncated Mach-O header")

    ncmds, sizeofcmds = struct.unpack_from(order + "II", image, 16)
    commands_end = header_size + sizeofcmds
    _check_range(format_name, "load commands", header_size, sizeofcmds, limit)

    nsyms: int | None = None
    offset = header_size
    for index in range(ncmds):
        if commands_end - offset < 8:
            raise ContainerParseError(format_name, f"load command {index} is truncated")
        cmd, cmdsize = struct.unpack_from(order + "II", image, offset)
        if cmdsize < 8 or cmdsize > commands_end - offset:
            raise ContainerParseError(
                format_name, f"load command {index} has invalid size {cmdsize}"
            )
        if cmd == _LC_SYMTAB and cmdsize >= _SYMTAB_SIZE:
            symoff, nsyms, stroff, strsize = struct.unpack_from(order + "4I", image, offset + 8)
            _check_range(format_name, "symbol table", symoff, nsyms * nlist_size, limit)
            _check_range(format_name, "string table", stroff, strsize, limit)
        elif cmd == _LC_DYSYMTAB and cmdsize >= _DYSYMTAB_SIZE:
            fields = struct.unpack_from(order + "18I", image, offset + 8)
            iundefsym, nundefsym = fields[4], fields[5]
            indirectsymoff, nindirectsyms = fields[12], fields[13]
            if nsyms is not None and iundefsym + nundefsym > nsyms:
                raise ContainerParseError(
                    format_name,
                    f"undefined symbols {iundefsym}+{nundefsym} exceed the "
                    f"{nsyms}-entry symbol table",
                )
            _check_range(
                format_name, "indirect symbol table", indirectsymoff, nindirectsyms * 4, limit
            )
        offset += cmdsize


def check_fat_layout(data: bytes) -> None:
    """Validate a fat header, its architecture table and every slice.

    Raises:
        ContainerParseError: No architectures, a truncated table, or a
            slice that is out of bounds or malformed.
    """
    limit = len(data)
    if limit < _FAT_HEADER_SIZE:
        raise ContainerParseError("macho_fat", "truncated fat header")
    (nfat_arch,) = struct.unpack_from(">I", data, 4)
    if nfat_arch == 0:
        raise ContainerParseError("macho_fat", "Mach-O container holds no image")
    _check_range(
        "macho_fat", "architecture table", _FAT_HEADER_SIZE, nfat_arch * _FAT_ARCH_SIZE, limit
    )

    view = memoryview(data)
    for index in range(nfat_arch):
        _, _, offset, size, _ = struct.unpack_from(
            ">iiIII", data, _FAT_HEADER_SIZE + index * _FAT_ARCH_SIZE
        )
        _check_range("macho_fat", f"slice {index}", offset, size, limit)
        check_image_layout(view[offset:offset + size], "macho_fat")


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def _parse(data: bytes, format_name: str) -> lief.MachO.FatBinary:
    fat = lief.MachO.parse(io.BytesIO(data))
    if fat is None:
        raise ContainerParseError(format_name, "LIEF could not parse the Mach-O container")
    return fat


def parse_thin(data: bytes) -> MachOImage:
    """Import lists of a thin Mach-O image.

    Raises:
        ContainerParseError: The layout checks or LIEF rejected the buffer,
            or it holds no image.
    """
    check_image_layout(data, "macho")
    fat = _parse(data, "macho")
    if len(fat) == 0:
        raise ContainerParseError("macho", "Mach-O container holds no image")
    return _to_image(fat.at(0))


def parse_fat(data: bytes) -> list[MachOImage]:
    """Import lists of every architecture slice in a fat Mach-O.

    Raises:
        ContainerParseError: The layout checks or LIEF rejected the buffer,
            or it holds no image.
    """
    check_fat_layout(data)
    fat = _parse(data, "macho_fat")  # keep the container alive while iterating
    images = [_to_image(binary) for binary in fat]
    if not images:
        raise ContainerParseError("macho_fat", "Mach-O container holds no image")
    return images
