"""
Imphash Error Types
====================

Fatal pipeline errors.  Each one means no :class:`ImpHashResult` was
produced for the input; a failed fuzzy hash is not an error and never
raises.
"""

from __future__ import annotations

from typing import Optional


class ImphashError(Exception):
    """Base class for every fatal import-hash pipeline error."""


class UnsupportedFormatError(ImphashError):
    """The buffer starts with none of the recognised magic numbers."""

    def __init__(self, prefix: bytes = b"") -> None:
        self.prefix = prefix
        super().__init__(f"unrecognized format (leading bytes: {prefix.hex() or 'none'})")


class MalformedELFSectionsError(ImphashError):
    """ELF section headers declare more bytes than the buffer holds.

    Attributes:
        index: Index of the section that tripped the check.
        size: Declared size of that section.
        limit: Total input length.
        cumulative: Running total of declared sizes up to and including
                    *index*, or ``None`` when the section alone is too large.
    """

    def __init__(
        self,
        index: int,
        size: int,
        limit: int,
        cumulative: Optional[int] = None,
    ) -> None:
        self.index = index
        self.size = size
        self.limit = limit
        self.cumulative = cumulative
        if cumulative is None:
            message = f"section {index} too large: {size} > {limit}"
        else:
            message = f"sections up to {index} too large: {cumulative} > {limit}"
        super().__init__(message)


class FileTooLargeError(ImphashError):
    """An input file exceeds the configured ``max_file_size``."""

    def __init__(self, path: str, size: int, limit: int) -> None:
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"File too large: {size:,} bytes (max: {limit:,} bytes)")


class ContainerParseError(ImphashError):
    """The third-party container parser rejected the buffer.

    The parser's own exception is kept as :attr:`cause` (and chained as
    ``__cause__``); its message is reused verbatim.
    """

    def __init__(self, format_name: str, cause: BaseException | str) -> None:
        self.format_name = format_name
        self.cause = cause
        super().__init__(str(cause))
