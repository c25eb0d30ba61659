"""
Imphash Engine
===============

Orchestrates the import-hash pipeline for one buffer and fans it out over
files for batch runs.

Pipeline (per buffer):
    1. Sniff the container format from the leading magic bytes.
    2. ELF only: run the section-size integrity guard.
    3. Read the import table with the format's container reader.
    4. Normalize it into the canonical string.
    5. Digest: MD5, padded string, ssdeep.

The per-buffer pipeline is synchronous and pure: the same bytes always give
the same :class:`ImpHashResult`.  The only state shared between concurrent
calls is the scratch-buffer pool.  Any fatal error propagates and no
partial result exists.

Batch runs wrap each file separately: a file that fails is recorded with
its error and the rest of the batch continues.

References:
    - Mandiant. (2014). Tracking Malware with Import Hashing.
"""

from __future__ import annotations

import asyncio
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Iterator

from shared.config import PhantomConfig, get_config
from shared.logger import PhantomLogger

from imphash.analyzers import normalizers
from imphash.analyzers.digest import DigestBuilder
from imphash.analyzers.integrity import check_elf
from imphash.analyzers.scratch import ScratchPool
from imphash.core.errors import FileTooLargeError, ImphashError
from imphash.core.models import (
    BinaryFormat,
    FileHashResult,
    ImpHashResult,
    SimilarityResult,
)
from imphash.parsers import elf_reader, macho_reader, pe_reader
from imphash.parsers.magic import describe_format, sniff_format


class ImphashEngine:
    """Computes import hashes for buffers and files.

    Usage::

        engine = ImphashEngine()
        result = engine.hash_bytes(Path("sample.exe").read_bytes())
        print(result.imp_hash, result.imp_fuzzy)

        for record in engine.hash_files(["a.exe", "b.so"]):
            print(record.path, record.result or record.error)
    """

    def __init__(
        self,
        config: PhantomConfig | None = None,
        logger: PhantomLogger | None = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: Configuration.  The cached project config is used if
                    not provided.
            logger: Logger instance.  A new one is created if not provided.
        """
        self._config: PhantomConfig = config or get_config()
        self._logger: PhantomLogger = logger or PhantomLogger("imphash.engine")
        settings = self._config.imphash
        self._pool = ScratchPool(max_idle=settings.scratch_pool_size)
        self._digest = DigestBuilder(fuzzy=settings.fuzzy_hash, logger=self._logger)
        self._canonicalizers: dict[BinaryFormat, Callable[[bytes], str]] = {
            BinaryFormat.PE: self._canonical_pe,
            BinaryFormat.ELF: self._canonical_elf,
            BinaryFormat.MACHO: self._canonical_macho,
            BinaryFormat.MACHO_FAT: self._canonical_macho_fat,
        }

    # ------------------------------------------------------------------ #
    #  Core entry point
    # ------------------------------------------------------------------ #

    def hash_bytes(self, data: bytes) -> ImpHashResult:
        """Fingerprint one in-memory binary.

        Raises:
            UnsupportedFormatError: No known magic number.
            MalformedELFSectionsError: ELF section sizes exceed the buffer.
            ContainerParseError: The container parser rejected the buffer.
        """
        _, canonical = self.canonical_string(data)
        return self._digest.build(canonical)

    def canonical_string(self, data: bytes) -> tuple[BinaryFormat, str]:
        """Detect the format and return it with the unpadded canonical string."""
        binary_format = sniff_format(data)
        self._logger.debug("Detected format: %s", describe_format(data))
        return binary_format, self._canonicalize(binary_format, data)

    def _canonicalize(self, binary_format: BinaryFormat, data: bytes) -> str:
        return self._canonicalizers[binary_format](data)

    # ------------------------------------------------------------------ #
    #  Per-format canonicalisation
    # ------------------------------------------------------------------ #

    def _canonical_pe(self, data: bytes) -> str:
        return normalizers.normalize_pe(pe_reader.imported_symbols(data), self._pool)

    def _canonical_elf(self, data: bytes) -> str:
        check_elf(data)
        return normalizers.normalize_elf(elf_reader.imported_symbols(data), self._pool)

    def _canonical_macho(self, data: bytes) -> str:
        return normalizers.normalize_macho(macho_reader.parse_thin(data), self._pool)

    def _canonical_macho_fat(self, data: bytes) -> str:
        slices = macho_reader.parse_fat(data)
        self._logger.debug(
            "Fat Mach-O slices: %s", ", ".join(image.cpu for image in slices) or "none"
        )
        return normalizers.normalize_macho_fat(slices, self._pool)

    # ------------------------------------------------------------------ #
    #  Files
    # ------------------------------------------------------------------ #

    def read_file(self, path: str | Path) -> bytes:
        """Read *path*, enforcing the configured size limit.

        Raises:
            FileTooLargeError: The file exceeds ``max_file_size``.
            OSError: The file cannot be read.
        """
        file_path = Path(path)
        size = file_path.stat().st_size
        limit = self._config.imphash.max_file_size
        if size > limit:
            raise FileTooLargeError(str(file_path), size, limit)
        return file_path.read_bytes()

    def hash_file(self, path: str | Path) -> ImpHashResult:
        """Fingerprint the binary stored at *path*."""
        return self.hash_bytes(self.read_file(path))

    def hash_file_record(self, path: str | Path) -> FileHashResult:
        """Fingerprint *path*, capturing any failure in the returned record."""
        record = FileHashResult(path=str(path))
        with self._logger.operation(str(path)):
            try:
                data = self.read_file(path)
                record.size = len(data)
                record.format = sniff_format(data)
                canonical = self._canonicalize(record.format, data)
                record.result = self._digest.build(canonical)
            except (ImphashError, OSError) as exc:
                record.error = str(exc)
                record.error_kind = type(exc).__name__
                self._logger.warning("%s: %s", path, exc, error_kind=record.error_kind)
            except Exception as exc:
                record.error = f"Analysis failed: {exc}"
                record.error_kind = type(exc).__name__
                self._logger.exception("%s: analysis failed", path)
        return record

    def hash_files(self, paths: Iterable[str | Path]) -> list[FileHashResult]:
        """Fingerprint many files concurrently, preserving input order.

        Failures are isolated per file; see :meth:`hash_file_record`.
        """
        targets = list(paths)
        workers = max(1, self._config.global_settings.max_workers)
        with self._logger.timed(f"hashing {len(targets)} file(s)"):
            if workers == 1 or len(targets) <= 1:
                return [self.hash_file_record(p) for p in targets]
            with ThreadPoolExecutor(max_workers=workers) as pool:
                return list(pool.map(self.hash_file_record, targets))

    async def analyze(self, paths: Iterable[str | Path]) -> list[FileHashResult]:
        """Async wrapper running :meth:`hash_files` in the default executor."""
        targets = list(paths)
        return await asyncio.get_running_loop().run_in_executor(
            None, self.hash_files, targets
        )

    # ------------------------------------------------------------------ #
    #  Similarity
    # ------------------------------------------------------------------ #

    def compare(self, left: ImpHashResult, right: ImpHashResult) -> SimilarityResult:
        """ssdeep similarity of two fingerprints' fuzzy hashes."""
        return SimilarityResult(
            left=left.imp_fuzzy,
            right=right.imp_fuzzy,
            score=self._digest.compare(left.imp_fuzzy, right.imp_fuzzy),
        )

    def compare_files(self, left: str | Path, right: str | Path) -> SimilarityResult:
        return self.compare(self.hash_file(left), self.hash_file(right))


# ---------------------------------------------------------------------------
# Target expansion
# ---------------------------------------------------------------------------

def iter_targets(paths: Iterable[str | Path], recursive: bool = False) -> Iterator[Path]:
    """Expand *paths* into files: files as given, directories walked.

    Directory entries are yielded in sorted order so batch output is stable.
    """
    for raw in paths:
        path = Path(raw)
        if not path.is_dir():
            yield path
            continue
        if recursive:
            for root, dirs, files in os.walk(path):
                dirs.sort()
                for name in sorted(files):
                    yield Path(root) / name
        else:
            yield from sorted(p for p in path.iterdir() if p.is_file())


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------

_DEFAULT_ENGINE: ImphashEngine | None = None


def imphash_from_bytes(data: bytes) -> ImpHashResult:
    """Fingerprint *data* with a shared, default-configured engine."""
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = ImphashEngine()
    return _DEFAULT_ENGINE.hash_bytes(data)
