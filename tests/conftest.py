"""Shared fixtures: byte-level builders for ELF, PE and Mach-O images and a
quiet engine."""

import struct

import pytest

from shared.config import GlobalConfig, ImphashConfig, PhantomConfig
from shared.logger import PhantomLogger

from imphash.core.engine import ImphashEngine

_EHDR_SIZE = 64
_SHDR_SIZE = 64

SHT_PROGBITS = 1
SHT_STRTAB = 3
SHT_DYNSYM = 11
SHT_GNU_VERNEED = 0x6FFFFFFE
SHT_GNU_VERSYM = 0x6FFFFFFF
SHF_ALLOC = 0x2

_STB = {"local": 0, "global": 1, "weak": 2}
_STT_FUNC = 2
_VER_NDX_GLOBAL = 1
_GLIBC_VERSION = "GLIBC_2.2.5"


def _align(blob, boundary=8):
    return blob + b"\x00" * (-len(blob) % boundary)


def _string_table(names):
    """NUL-led string table and the offset of each name in it."""
    blob = b"\x00"
    offsets = {}
    for name in names:
        if name not in offsets:
            offsets[name] = len(blob)
            blob += name.encode() + b"\x00"
    return blob, offsets


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

def _shdr(name, sh_type, offset, size, *, flags=0, link=0, info=0, align=1, entsize=0):
    return struct.pack(
        "<IIQQQQIIQQ", name, sh_type, flags, 0, offset, size, link, info, align, entsize
    )


def _ehdr(e_type, shoff, shnum, shstrndx):
    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + b"\x00" * 8
    return ident + struct.pack(
        "<HHIQQQIHHHHHH",
        e_type,
        62,             # e_machine: EM_X86_64
        1,              # e_version
        0,              # e_entry
        0,              # e_phoff
        shoff,
        0,              # e_flags
        _EHDR_SIZE,
        56,             # e_phentsize
        0,              # e_phnum
        _SHDR_SIZE,
        shnum,
        shstrndx,
    )


def build_elf(extra_section_sizes):
    """Build a little-endian ELF64 with a null section, ``.shstrtab`` and
    one ``.data`` section per entry of *extra_section_sizes* (declared
    ``sh_size`` only; no data is stored for them)."""
    shstrtab, names = _string_table([".shstrtab", ".data"])
    shoff = len(_align(b"\x00" * _EHDR_SIZE + shstrtab))
    body = _ehdr(2, shoff, 2 + len(extra_section_sizes), 1) + shstrtab
    body = _align(body)
    body += _shdr(0, 0, 0, 0)
    body += _shdr(names[".shstrtab"], SHT_STRTAB, _EHDR_SIZE, len(shstrtab))
    for size in extra_section_sizes:
        body += _shdr(names[".data"], SHT_PROGBITS, 0, size)
    return body


def build_dynamic_elf(symbols):
    """Build an ELF64 shared object with ``.dynsym`` and GNU versioning.

    *symbols* holds ``(name, library, bind, defined)`` tuples.  A symbol
    with a *library* is versioned against ``GLIBC_2.2.5`` of that needed
    file through ``.gnu.version_r``; ``None`` marks it unversioned
    (``VER_NDX_GLOBAL``).  *bind* is ``"global"``, ``"weak"`` or
    ``"local"``; defined symbols get a section index, the rest ``SHN_UNDEF``.
    """
    libraries = sorted({library for _, library, _, _ in symbols if library})
    version_index = {library: 2 + i for i, library in enumerate(libraries)}
    dynstr, strings = _string_table(
        [name for name, _, _, _ in symbols] + libraries + [_GLIBC_VERSION]
    )

    dynsym = b"\x00" * 24
    versym = struct.pack("<H", 0)
    for name, library, bind, defined in symbols:
        info = (_STB[bind] << 4) | _STT_FUNC
        dynsym += struct.pack("<IBBHQQ", strings[name], info, 0, 1 if defined else 0, 0, 0)
        versym += struct.pack("<H", version_index[library] if library else _VER_NDX_GLOBAL)

    verneed = b""
    for i, library in enumerate(libraries):
        vn_next = 0 if i == len(libraries) - 1 else 32
        verneed += struct.pack("<HHIII", 1, 1, strings[library], 16, vn_next)
        verneed += struct.pack(
            "<IHHII", 0x09691A75, 0, version_index[library], strings[_GLIBC_VERSION], 0
        )

    shstrtab, names = _string_table(
        [".dynstr", ".dynsym", ".gnu.version", ".gnu.version_r", ".shstrtab"]
    )
    body = b"\x00" * _EHDR_SIZE
    offsets = []
    for blob in (dynstr, dynsym, versym, verneed, shstrtab):
        body = _align(body)
        offsets.append(len(body))
        body += blob
    body = _align(body)
    shoff = len(body)

    headers = [
        _shdr(0, 0, 0, 0),
        _shdr(names[".dynstr"], SHT_STRTAB, offsets[0], len(dynstr), flags=SHF_ALLOC),
        _shdr(names[".dynsym"], SHT_DYNSYM, offsets[1], len(dynsym),
              flags=SHF_ALLOC, link=1, info=1, align=8, entsize=24),
        _shdr(names[".gnu.version"], SHT_GNU_VERSYM, offsets[2], len(versym),
              flags=SHF_ALLOC, link=2, align=2, entsize=2),
        _shdr(names[".gnu.version_r"], SHT_GNU_VERNEED, offsets[3], len(verneed),
              flags=SHF_ALLOC, link=1, info=len(libraries), align=8),
        _shdr(names[".shstrtab"], SHT_STRTAB, offsets[4], len(shstrtab)),
    ]
    return _ehdr(3, shoff, len(headers), 5) + body[_EHDR_SIZE:] + b"".join(headers)


# ---------------------------------------------------------------------------
# PE
# ---------------------------------------------------------------------------

def build_pe(dll, names, ordinals):
    """Build a PE32 image whose single ``.idata`` section imports *names*
    by name and *ordinals* by ordinal from *dll*."""
    section_rva, raw_offset, raw_size = 0x1000, 0x200, 0x200
    thunk_count = len(names) + len(ordinals) + 1
    ilt_off = 0x40  # one descriptor plus the all-zero terminator
    iat_off = ilt_off + 4 * thunk_count
    hint_off = iat_off + 4 * thunk_count

    thunks = []
    hint_names = b""
    for name in names:
        thunks.append(section_rva + hint_off + len(hint_names))
        hint_names += _align(struct.pack("<H", 0) + name.encode() + b"\x00", 2)
    thunks += [0x80000000 | ordinal for ordinal in ordinals]
    thunk_table = b"".join(struct.pack("<I", t) for t in thunks) + b"\x00" * 4
    dll_off = hint_off + len(hint_names)

    idata = bytearray(raw_size)
    idata[0:20] = struct.pack(
        "<IIIII", section_rva + ilt_off, 0, 0, section_rva + dll_off, section_rva + iat_off
    )
    idata[ilt_off:ilt_off + len(thunk_table)] = thunk_table
    idata[iat_off:iat_off + len(thunk_table)] = thunk_table
    idata[hint_off:dll_off] = hint_names
    dll_name = dll.encode() + b"\x00"
    idata[dll_off:dll_off + len(dll_name)] = dll_name

    dos = bytearray(64)
    dos[0:2] = b"MZ"
    struct.pack_into("<I", dos, 0x3C, 0x40)
    coff = struct.pack("<HHIIIHH", 0x14C, 1, 0, 0, 0, 224, 0x0102)
    optional = struct.pack(
        "<HBB9I6H4I2H6I",
        0x10B, 14, 0,                        # magic, linker version
        0, raw_size, 0,                      # code / initialised / uninitialised sizes
        0, 0, section_rva,                   # entry point, BaseOfCode, BaseOfData
        0x400000, 0x1000, 0x200,             # ImageBase, section and file alignment
        6, 0, 0, 0, 6, 0,                    # OS, image, subsystem versions
        0, 0x2000, raw_offset, 0,            # Win32Version, SizeOfImage, SizeOfHeaders, CheckSum
        3, 0,                                # console subsystem, DllCharacteristics
        0x100000, 0x1000, 0x100000, 0x1000,  # stack and heap reserve / commit
        0, 16,                               # LoaderFlags, NumberOfRvaAndSizes
    )
    directories = [(0, 0)] * 16
    directories[1] = (section_rva, 40)
    optional += b"".join(struct.pack("<II", rva, size) for rva, size in directories)
    section = struct.pack(
        "<8sIIIIIIHHI", b".idata", raw_size, section_rva, raw_size, raw_offset,
        0, 0, 0, 0, 0xC0000040,
    )
    headers = bytes(dos) + b"PE\x00\x00" + coff + optional + section
    return headers + b"\x00" * (raw_offset - len(headers)) + bytes(idata)


# ---------------------------------------------------------------------------
# Mach-O
# ---------------------------------------------------------------------------

_MH_MAGIC_64 = 0xFEEDFACF
_MH_EXECUTE = 2
_LC_SEGMENT_64 = 0x19
_LC_LOAD_DYLIB = 0xC
_LC_SYMTAB = 0x2
_LC_DYSYMTAB = 0xB
_N_UNDF_EXT = 0x01
_CPUS = {"x86_64": (0x01000007, 3), "arm64": (0x0100000C, 0)}


def _segment(name, vmaddr, fileoff, filesize, prot):
    return struct.pack(
        "<II16sQQQQiiII", _LC_SEGMENT_64, 72, name, vmaddr, 0x1000, fileoff, filesize,
        prot, prot, 0, 0,
    )


def build_macho(cpu, libraries, symbols, *, dysymtab=None):
    """Build a little-endian 64-bit ``MH_EXECUTE`` image.

    Each entry of *libraries* becomes an ``LC_LOAD_DYLIB`` command and each
    of *symbols* an undefined external ``nlist_64`` bound to the first
    library.  *dysymtab*, if given, is an ``(iundefsym, nundefsym)`` pair
    written into an ``LC_DYSYMTAB`` command.
    """
    cputype, cpusubtype = _CPUS[cpu]
    dylibs = []
    for library in libraries:
        name = _align(library.encode() + b"\x00")
        dylibs.append(
            struct.pack("<6I", _LC_LOAD_DYLIB, 24 + len(name), 24, 2, 0x10000, 0x10000) + name
        )

    ncmds = 3 + len(dylibs) + (1 if dysymtab else 0)
    sizeofcmds = 2 * 72 + sum(len(d) for d in dylibs) + 24 + (80 if dysymtab else 0)
    linkedit = len(_align(b"\x00" * (32 + sizeofcmds)))

    strtab, strings = _string_table(symbols)
    nlists = b"".join(
        struct.pack("<IBBHQ", strings[name], _N_UNDF_EXT, 0, 1 << 8, 0) for name in symbols
    )
    stroff = linkedit + len(nlists)
    end = stroff + len(strtab)

    commands = _segment(b"__TEXT", 0x100000000, 0, linkedit, 5)
    commands += _segment(b"__LINKEDIT", 0x100001000, linkedit, end - linkedit, 1)
    commands += b"".join(dylibs)
    commands += struct.pack("<6I", _LC_SYMTAB, 24, linkedit, len(symbols), stroff, len(strtab))
    if dysymtab:
        fields = [0] * 18
        fields[4], fields[5] = dysymtab
        commands += struct.pack("<20I", _LC_DYSYMTAB, 80, *fields)

    header = struct.pack(
        "<IiiIIIII", _MH_MAGIC_64, cputype, cpusubtype, _MH_EXECUTE, ncmds, sizeofcmds, 0, 0
    )
    body = header + commands
    return body + b"\x00" * (linkedit - len(body)) + nlists + strtab


def build_fat_macho(*slices):
    """Build a universal binary holding the thin *slices* at 4 KiB offsets."""
    arches = b""
    placed = []
    offset = 0x1000
    for blob in slices:
        cputype, cpusubtype = struct.unpack_from("<ii", blob, 4)
        arches += struct.pack(">iiIII", cputype, cpusubtype, offset, len(blob), 12)
        placed.append((offset, blob))
        offset += len(_align(blob, 0x1000))
    out = bytearray(struct.pack(">II", 0xCAFEBABE, len(slices)) + arches)
    out += b"\x00" * (placed[-1][0] + len(placed[-1][1]) - len(out))
    for start, blob in placed:
        out[start:start + len(blob)] = blob
    return bytes(out)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def quiet_logger():
    return PhantomLogger("tests", console_output=False)


@pytest.fixture
def config():
    return PhantomConfig(
        global_settings=GlobalConfig(log_level="WARNING", max_workers=2),
        imphash=ImphashConfig(fuzzy_hash=False, scratch_pool_size=4),
    )


@pytest.fixture
def engine(config, quiet_logger):
    return ImphashEngine(config, quiet_logger)


@pytest.fixture
def make_elf():
    return build_elf


@pytest.fixture
def well_formed_elf():
    return build_elf([16])


@pytest.fixture
def dynamic_elf():
    return build_dynamic_elf(
        [
            ("printf", "libc.so.6", "global", False),
            ("puts", None, "global", False),
            ("cos", "libm.so.6", "global", False),
            ("__gmon_start__", None, "weak", False),
            ("exported", None, "global", True),
        ]
    )


@pytest.fixture
def pe_with_ordinal():
    return build_pe("KERNEL32.dll", ["GetLastError", "ExitProcess"], [17])


@pytest.fixture
def make_macho():
    return build_macho


@pytest.fixture
def fat_macho():
    x86 = build_macho("x86_64", ["/usr/lib/libSystem.B.dylib"], ["_exit", "_printf"])
    arm = build_macho(
        "arm64",
        ["/usr/lib/libSystem.B.dylib", "/usr/lib/libobjc.A.dylib"],
        ["_exit", "_objc_msgSend"],
    )
    return build_fat_macho(x86, arm)
