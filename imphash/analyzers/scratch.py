"""
Scratch Buffer Pool
====================

A thread-safe pool of reusable :class:`io.StringIO` buffers for building
canonical import strings.  Batch runs fingerprint thousands of files; the
pool keeps the number of live buffers bounded by the worker count rather
than by the number of files.

A borrowed buffer is always empty on entry and is handed back on exit,
even when serialisation raises.  Buffers carry nothing between borrows.
"""

from __future__ import annotations

import io
import threading
from contextlib import contextmanager
from typing import Iterator


class ScratchPool:
    """Bounded free-list of string-building buffers.

    Usage::

        pool = ScratchPool(max_idle=8)
        with pool.borrow() as buf:
            buf.write("kernel32.createfilea")
            text = buf.getvalue()

    Args:
        max_idle: Maximum number of idle buffers retained between borrows.
                  Surplus buffers are dropped on return.
    """

    def __init__(self, max_idle: int = 16) -> None:
        self._max_idle = max(0, max_idle)
        self._idle: list[io.StringIO] = []
        self._lock = threading.Lock()

    @contextmanager
    def borrow(self) -> Iterator[io.StringIO]:
        """Lend an empty buffer for the duration of the ``with`` block."""
        with self._lock:
            buf = self._idle.pop() if self._idle else io.StringIO()
        buf.seek(0)
        buf.truncate(0)
        try:
            yield buf
        finally:
            with self._lock:
                if len(self._idle) < self._max_idle:
                    self._idle.append(buf)

    @property
    def idle(self) -> int:
        """Number of buffers currently waiting in the pool."""
        with self._lock:
            return len(self._idle)
