"""CSV and JSON exports of the comparison."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Optional

from ..core.report import COMPARISON_COLUMNS, EXTRA_COLUMNS, ReportTables
from ..models.comparison import ComparisonReport
from ..models.run import SkippedUnit


def _write_csv(path: Path, columns: list[str], rows: list[list[str]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        writer.writerows(rows)


def export_csv_report(tables: ReportTables, output_path: Path) -> list[Path]:
    """Write <stem>.csv (comparison) and <stem>-extra.csv (extra settings)."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    extra_path = output_path.with_name(f"{output_path.stem}-extra{output_path.suffix or '.csv'}")

    _write_csv(output_path, COMPARISON_COLUMNS, [row.cells() for row in tables.comparison])
    _write_csv(extra_path, EXTRA_COLUMNS, [row.cells() for row in tables.extras])
    return [output_path, extra_path]


def build_json_document(
    report: ComparisonReport,
    tables: ReportTables,
    skipped: Optional[list[SkippedUnit]] = None,
) -> dict:
    return {
        "version": "1.0.0",
        "summary": report.summary.model_dump(),
        "results": [r.model_dump(mode="json") for r in report.results],
        "extras": [e.model_dump(mode="json") for e in report.extras],
        "rows": {
            "comparison": [r.model_dump() for r in tables.comparison],
            "extras": [r.model_dump() for r in tables.extras],
        },
        "skipped": [s.model_dump(mode="json") for s in (skipped or [])],
    }


def export_json_report(
    report: ComparisonReport,
    tables: ReportTables,
    output_path: Path,
    skipped: Optional[list[SkippedUnit]] = None,
) -> Path:
    """Write the full comparison to a JSON file (UTF-8, no BOM)."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(build_json_document(report, tables, skipped), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return output_path
