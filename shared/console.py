"""
PhantomCore Console Interface
==============================

Rich-powered console abstraction used by the import-hash CLI.

Wraps :class:`rich.console.Console` with a fixed theme and helpers for
banners, section rules, severity-coloured messages and tables.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

_PHANTOM_THEME = Theme(
    {
        "phantom.banner": "bold bright_cyan",
        "phantom.section": "bold bright_magenta",
        "phantom.success": "bold green",
        "phantom.warning": "bold yellow",
        "phantom.error": "bold red",
        "phantom.info": "bold bright_blue",
        "phantom.dim": "dim white",
        "phantom.highlight": "bold bright_white",
    }
)


class PhantomConsole:
    """Unified console interface.

    Usage::

        con = PhantomConsole()
        con.banner("1.0.0")
        con.section("Import hashes")
        con.success("3 files fingerprinted")

    Args:
        quiet: Suppress all output (JSON and library mode).
    """

    def __init__(self, *, quiet: bool = False) -> None:
        self._console = Console(
            theme=_PHANTOM_THEME,
            quiet=quiet,
            highlight=False,
        )

    def banner(self, version: str = "1.0.0") -> None:
        """Display the tool banner panel."""
        self._console.print(
            Panel.fit(
                "[phantom.banner]PhantomCore imphash[/phantom.banner]\n"
                "[phantom.dim]Import-table fingerprinting for PE, ELF and Mach-O"
                f"  |  v{version}[/phantom.dim]",
                border_style="bright_cyan",
            )
        )

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(f"  {title}  ", style="phantom.section", characters="─")

    # ------------------------------------------------------------------ #
    #  Message helpers (severity-coloured)
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        self._console.print(f"[phantom.success][✔] SUCCESS:[/phantom.success] {escape(message)}")

    def warning(self, message: str) -> None:
        self._console.print(f"[phantom.warning][⚠] WARNING:[/phantom.warning] {escape(message)}")

    def error(self, message: str) -> None:
        self._console.print(f"[phantom.error][✘] ERROR:[/phantom.error] {escape(message)}")

    def info(self, message: str) -> None:
        self._console.print(f"[phantom.info][ℹ] INFO:[/phantom.info] {escape(message)}")

    # ------------------------------------------------------------------ #
    #  Table display
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Row tuples; each cell is stringified.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            tbl.add_column(col_name, style=style, overflow="fold")

        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))

        self._console.print(tbl)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

