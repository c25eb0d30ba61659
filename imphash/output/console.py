"""
Imphash Console Output
=======================

Rich terminal display for import-hash results: a batch summary table, a
detail panel per fingerprint, and similarity scores.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel

from shared.console import PhantomConsole

from imphash.core.models import BinaryFormat, FileHashResult, ImpHashResult, SimilarityResult


_FORMAT_COLOURS: dict[str, str] = {
    "pe": "bright_cyan",
    "elf": "bright_green",
    "macho": "bright_magenta",
    "macho_fat": "magenta",
}


def _similarity_colour(score: int) -> str:
    """Return a colour for an ssdeep match score."""
    if score >= 80:
        return "bright_red"
    if score >= 50:
        return "yellow"
    if score > 0:
        return "bright_cyan"
    return "dim"


class ImphashConsoleOutput:
    """Rich terminal display for import-hash results.

    Usage::

        output = ImphashConsoleOutput()
        output.display_batch(records)
    """

    def __init__(self, console: PhantomConsole | None = None) -> None:
        self._console: PhantomConsole = console or PhantomConsole()

    def display_batch(self, records: list[FileHashResult], show_string: bool = False) -> None:
        """Summary table of a batch, then details when there is one file."""
        self._console.section("Import Hashes")
        rows = []
        for record in records:
            fmt = record.format.value if record.format else "-"
            if record.result is not None:
                rows.append((record.path, fmt, record.result.imp_hash, record.result.imp_fuzzy or "-"))
            else:
                rows.append((record.path, fmt, f"{record.error_kind}: {record.error}", "-"))
        ok = sum(1 for r in records if r.ok)
        self._console.table(
            "Fingerprints",
            ["File", "Format", "ImpHash", "ImpFuzzy"],
            rows,
            caption=f"{ok}/{len(records)} fingerprinted",
            styles=["bold", "", "bright_white", "dim"],
        )
        if len(records) == 1 and records[0].result is not None:
            self.display_result(records[0].path, records[0].result, records[0].format, show_string)

    def display_result(
        self,
        label: str,
        result: ImpHashResult,
        binary_format: BinaryFormat | None = None,
        show_string: bool = False,
    ) -> None:
        """Detail panel for a single fingerprint."""
        fmt = binary_format.value if binary_format is not None else "?"
        colour = _FORMAT_COLOURS.get(fmt, "white")
        canonical = result.canonical
        tokens = canonical.count(",") + 1 if canonical else 0
        lines = [
            f"[bold]File:[/bold]      {escape(label)}",
            f"[bold]Format:[/bold]    [{colour}]{fmt.upper()}[/{colour}]",
            f"[bold]ImpHash:[/bold]   {result.imp_hash}",
            f"[bold]ImpFuzzy:[/bold]  {escape(result.imp_fuzzy) or '[dim]unavailable[/dim]'}",
            f"[bold]Tokens:[/bold]    {tokens}",
        ]
        if show_string:
            lines.append(f"[bold]ImpString:[/bold] {escape(canonical) or '[dim](empty)[/dim]'}")
        self._console.print(
            Panel(
                "\n".join(lines),
                title="[bold bright_cyan]Import Fingerprint[/bold bright_cyan]",
                border_style="bright_cyan",
            )
        )

    def display_similarity(self, left: str, right: str, similarity: SimilarityResult) -> None:
        """Show two fuzzy hashes and their match score."""
        colour = _similarity_colour(similarity.score)
        self._console.section("ImpFuzzy Similarity")
        self._console.table(
            "Fuzzy hashes",
            ["File", "ImpFuzzy"],
            [(left, similarity.left or "-"), (right, similarity.right or "-")],
        )
        self._console.print(f"[bold]Score:[/bold] [{colour}]{similarity.score}/100[/{colour}]")
