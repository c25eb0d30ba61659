"""
Imphash Report Generator
=========================

Writes batch fingerprints as JSON (for pipelines and SIEM ingestion) or
CSV (for spreadsheet triage and clustering scripts).

Both formats use the ``ImpHash`` / ``ImpFuzzy`` / ``ImpString`` field
names.  ``ImpString`` is written without its trailing padding unless
``include_string`` is set, in which case the padded value is kept.
"""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from imphash.core.models import FileHashResult

_CSV_COLUMNS: tuple[str, ...] = (
    "path",
    "size",
    "format",
    "ImpHash",
    "ImpFuzzy",
    "ImpString",
    "error_kind",
    "error",
)


class ImphashReportGenerator:
    """Serialise batch results to JSON or CSV.

    Args:
        include_string: Emit the padded ``ImpString`` instead of the
                        canonical (unpadded) string.
    """

    def __init__(self, include_string: bool = False) -> None:
        self._include_string = include_string

    def record_to_dict(self, record: FileHashResult) -> dict[str, Any]:
        """Flatten one record into report fields."""
        entry: dict[str, Any] = {
            "path": record.path,
            "size": record.size,
            "format": record.format.value if record.format else None,
            "ImpHash": None,
            "ImpFuzzy": None,
            "ImpString": None,
            "error_kind": record.error_kind or None,
            "error": record.error or None,
        }
        if record.result is not None:
            entry["ImpHash"] = record.result.imp_hash
            entry["ImpFuzzy"] = record.result.imp_fuzzy
            entry["ImpString"] = (
                record.result.imp_string if self._include_string else record.result.canonical
            )
        return entry

    def build_json(self, records: list[FileHashResult]) -> dict[str, Any]:
        return {
            "report_type": "imphash",
            "version": "1.0.0",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "total": len(records),
            "failed": sum(1 for r in records if not r.ok),
            "results": [self.record_to_dict(r) for r in records],
        }

    def generate_json(self, records: list[FileHashResult], output_path: str | Path) -> str:
        """Write a JSON report and return its absolute path."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", errors="surrogateescape") as f:
            json.dump(self.build_json(records), f, indent=2, ensure_ascii=False, default=str)
        return str(path.resolve())

    def generate_csv(self, records: list[FileHashResult], output_path: str | Path) -> str:
        """Write a CSV report (one row per file) and return its absolute path."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS)
            writer.writeheader()
            for record in records:
                row = self.record_to_dict(record)
                writer.writerow({k: "" if v is None else v for k, v in row.items()})
        return str(path.resolve())

    def generate(self, records: list[FileHashResult], output_path: str | Path) -> str:
        """Write JSON or CSV depending on the output file's suffix."""
        if Path(output_path).suffix.lower() == ".csv":
            return self.generate_csv(records, output_path)
        return self.generate_json(records, output_path)
