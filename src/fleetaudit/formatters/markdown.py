"""Markdown baseline comparison report."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.report import COMPARISON_COLUMNS, EXTRA_COLUMNS, ReportTables
from ..models.run import SkippedUnit


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\r", "").replace("\n", "<br>")


def _table(columns: list[str], rows: list[list[str]]) -> list[str]:
    lines = [
        "| " + " | ".join(columns) + " |",
        "|" + "|".join("---" for _ in columns) + "|",
    ]
    for cells in rows:
        lines.append("| " + " | ".join(_cell(c) for c in cells) + " |")
    return lines


def generate_markdown_report(
    tables: ReportTables,
    baselines: Optional[list[str]] = None,
    policies: Optional[list[str]] = None,
    skipped: Optional[list[SkippedUnit]] = None,
    duration_seconds: float = 0,
) -> str:
    """Render the comparison as a Markdown document."""
    summary = tables.summary
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    lines: list[str] = []
    lines.append("# Baseline Comparison Report")
    lines.append("")
    lines.append(f"**Date:** {timestamp}")
    if baselines:
        lines.append(f"**Baselines:** {', '.join(baselines)}")
    if policies:
        lines.append(f"**Policies:** {', '.join(policies)}")
    lines.append(f"**Duration:** {round(duration_seconds, 1)}s")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| Result | Count |")
    lines.append("|--------|-------|")
    lines.append(f"| Match   | {summary.matches} |")
    lines.append(f"| Differ  | {summary.differs} |")
    lines.append(f"| Missing | {summary.missing} |")
    lines.append(f"| **Total** | **{summary.total}** |")
    lines.append(f"| Extra   | {summary.extra} |")
    lines.append("")

    lines.append("## Comparison")
    lines.append("")
    if tables.comparison:
        lines.extend(_table(COMPARISON_COLUMNS, [row.cells() for row in tables.comparison]))
    else:
        lines.append("_No expected settings._")
    lines.append("")

    lines.append("## Extra Settings")
    lines.append("")
    if tables.extras:
        lines.extend(_table(EXTRA_COLUMNS, [row.cells() for row in tables.extras]))
    else:
        lines.append("_No extra settings._")
    lines.append("")

    if skipped:
        lines.append("## Skipped Inputs")
        lines.append("")
        for unit in skipped:
            lines.append(f"- **{unit.kind.value}** `{unit.name}`: {unit.reason}")
        lines.append("")

    lines.append("---")
    lines.append(f"*Generated by fleetaudit at {timestamp}*")

    return "\n".join(lines)
