"""Tests for the imphash engine: dispatch, failures and batch runs."""

import asyncio
import hashlib

import pytest

from imphash.core.engine import ImphashEngine, imphash_from_bytes, iter_targets
from imphash.core.errors import (
    ContainerParseError,
    FileTooLargeError,
    MalformedELFSectionsError,
    UnsupportedFormatError,
)
from imphash.core.models import BinaryFormat, MachOImage
from imphash.parsers import elf_reader, macho_reader, pe_reader
from shared.config import ImphashConfig, PhantomConfig

EMPTY_MD5 = "d41d8cd98f00b204e9800998ecf8427e"


def test_elf_without_dynsym_hashes_empty_string(engine, well_formed_elf):
    result = engine.hash_bytes(well_formed_elf)
    assert result.imp_hash == EMPTY_MD5
    assert result.imp_string == " " * 4096


def test_same_bytes_same_result(engine, well_formed_elf):
    assert engine.hash_bytes(well_formed_elf) == engine.hash_bytes(bytes(well_formed_elf))


def test_elf_guard_runs_before_import_extraction(engine, make_elf, monkeypatch):
    def _must_not_run(data):
        raise AssertionError("imports read before the section guard")

    monkeypatch.setattr(elf_reader, "imported_symbols", _must_not_run)
    with pytest.raises(MalformedELFSectionsError):
        engine.hash_bytes(make_elf([1_000_000]))


def test_pe_garbage_is_container_error(engine):
    with pytest.raises(ContainerParseError) as exc_info:
        engine.hash_bytes(b"MZ" + b"\xff" * 200)
    assert exc_info.value.__cause__ is not None


def test_truncated_pe_is_container_error(engine):
    with pytest.raises(ContainerParseError):
        engine.hash_bytes(b"MZ")


def test_unknown_format(engine):
    with pytest.raises(UnsupportedFormatError):
        engine.hash_bytes(b"#!/bin/sh\necho hi\n")


def test_pe_dispatch_normalizes_descriptors(engine, monkeypatch):
    monkeypatch.setattr(
        pe_reader,
        "imported_symbols",
        lambda data: ["ExitProcess:KERNEL32.dll", "CreateFileA:kernel32.DLL", "WS2_32.dll#23"],
    )
    result = engine.hash_bytes(b"MZ" + b"\x00" * 62)
    canonical = "kernel32.createfilea,kernel32.exitprocess"
    assert result.imp_hash == hashlib.md5(canonical.encode()).hexdigest()
    assert result.canonical == canonical


def test_fat_macho_uses_union_of_slices(engine, monkeypatch):
    slices = [
        MachOImage(cpu="x86_64", libraries=("/usr/lib/libSystem.B.dylib",), symbols=("_exit",)),
        MachOImage(cpu="arm64", libraries=("/usr/lib/libobjc.A.dylib",), symbols=("_exit", "_objc_msgSend")),
    ]
    monkeypatch.setattr(macho_reader, "parse_fat", lambda data: slices)
    fmt, canonical = engine.canonical_string(b"\xca\xfe\xba\xbe" + b"\x00" * 28)
    assert fmt == BinaryFormat.MACHO_FAT
    assert canonical == "/usr/lib/libSystem.B,/usr/lib/libobjc.A,_exit,_objc_msgSend"


def test_thin_macho_dispatch(engine, monkeypatch):
    image = MachOImage(libraries=("/usr/lib/libSystem.B.dylib",), symbols=("_puts",))
    monkeypatch.setattr(macho_reader, "parse_thin", lambda data: image)
    fmt, canonical = engine.canonical_string(b"\xcf\xfa\xed\xfe" + b"\x00" * 28)
    assert fmt == BinaryFormat.MACHO
    assert canonical == "/usr/lib/libSystem.B,_puts"


def test_batch_isolates_failures(engine, tmp_path, well_formed_elf):
    good = tmp_path / "good.elf"
    good.write_bytes(well_formed_elf)
    text = tmp_path / "notes.txt"
    text.write_text("not a binary")
    broken = tmp_path / "broken.exe"
    broken.write_bytes(b"MZ" + b"\xff" * 100)

    records = engine.hash_files([text, good, broken])

    assert [r.path for r in records] == [str(text), str(good), str(broken)]
    assert [r.ok for r in records] == [False, True, False]
    assert records[0].error_kind == "UnsupportedFormatError"
    assert records[1].format == BinaryFormat.ELF
    assert records[1].result.imp_hash == EMPTY_MD5
    assert records[2].format == BinaryFormat.PE
    assert records[2].error_kind == "ContainerParseError"


def test_missing_file_recorded(engine, tmp_path):
    record = engine.hash_file_record(tmp_path / "absent.bin")
    assert not record.ok
    assert record.error_kind == "FileNotFoundError"


def test_file_size_limit(quiet_logger, tmp_path, well_formed_elf):
    path = tmp_path / "big.elf"
    path.write_bytes(well_formed_elf)
    config = PhantomConfig(imphash=ImphashConfig(max_file_size=16, fuzzy_hash=False))
    engine = ImphashEngine(config, quiet_logger)
    with pytest.raises(FileTooLargeError):
        engine.hash_file(path)


def test_async_analyze(engine, tmp_path, well_formed_elf):
    path = tmp_path / "a.elf"
    path.write_bytes(well_formed_elf)
    records = asyncio.run(engine.analyze([path]))
    assert len(records) == 1
    assert records[0].result.imp_hash == EMPTY_MD5


def test_compare_without_fuzzy_scores_zero(engine, tmp_path, well_formed_elf):
    path = tmp_path / "a.elf"
    path.write_bytes(well_formed_elf)
    similarity = engine.compare_files(path, path)
    assert similarity.score == 0


def test_iter_targets(tmp_path):
    (tmp_path / "b.bin").write_bytes(b"")
    (tmp_path / "a.bin").write_bytes(b"")
    nested = tmp_path / "sub"
    nested.mkdir()
    (nested / "c.bin").write_bytes(b"")

    assert [p.name for p in iter_targets([tmp_path])] == ["a.bin", "b.bin"]
    assert [p.name for p in iter_targets([tmp_path], recursive=True)] == ["a.bin", "b.bin", "c.bin"]


def test_module_level_helper_rejects_unknown_format():
    with pytest.raises(UnsupportedFormatError):
        imphash_from_bytes(b"\x00\x00\x00\x00")
