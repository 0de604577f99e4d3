"""Report rows: comparator output joined with display labels.

Formatters render these rows verbatim. Verdicts and counts come straight from
the comparator and are never recomputed here.
"""

from __future__ import annotations

from pydantic import BaseModel

from ..models.catalog import CatalogDictionary
from ..models.comparison import ComparisonReport, SummaryCounts
from .resolve import resolve_composite_description, resolve_composite_label, resolve_value

COMPARISON_COLUMNS: list[str] = [
    "Baseline Owner",
    "Composite Display Name",
    "Description",
    "Expected Value",
    "Configured Owners",
    "Actual Values",
    "Verdict",
]

EXTRA_COLUMNS: list[str] = [
    "Configured Owners",
    "Composite Display Name",
    "Description",
    "Actual Values",
]


class ComparisonRow(BaseModel):
    baseline_owner: str
    composite_key: str
    composite_display_name: str
    description: str = ""
    expected_value: str = ""
    configured_owners: list[str] = []
    actual_values: list[str] = []
    verdict: str

    def cells(self) -> list[str]:
        return [
            self.baseline_owner,
            self.composite_display_name,
            self.description,
            self.expected_value,
            "; ".join(self.configured_owners),
            "; ".join(self.actual_values),
            self.verdict,
        ]


class ExtraRow(BaseModel):
    composite_key: str
    configured_owners: list[str] = []
    composite_display_name: str
    description: str = ""
    actual_values: list[str] = []

    def cells(self) -> list[str]:
        return [
            "; ".join(self.configured_owners),
            self.composite_display_name,
            self.description,
            "; ".join(self.actual_values),
        ]


class ReportTables(BaseModel):
    comparison: list[ComparisonRow] = []
    extras: list[ExtraRow] = []
    summary: SummaryCounts = SummaryCounts()


def build_report_rows(report: ComparisonReport, catalog: CatalogDictionary) -> ReportTables:
    """Label every comparison and extra entry, keeping comparator order."""
    comparison = [
        ComparisonRow(
            baseline_owner=", ".join(result.baseline_owners) or result.baseline_owner,
            composite_key=result.composite_key,
            composite_display_name=resolve_composite_label(result.composite_key, catalog),
            description=resolve_composite_description(result.composite_key, catalog),
            expected_value=resolve_value(result.expected_value, catalog),
            configured_owners=list(result.matched_owners),
            actual_values=[resolve_value(v, catalog) for v in result.actual_values],
            verdict=result.verdict.value,
        )
        for result in report.results
    ]

    extras = [
        ExtraRow(
            composite_key=extra.composite_key,
            configured_owners=list(extra.configuring_owners),
            composite_display_name=resolve_composite_label(extra.composite_key, catalog),
            description=resolve_composite_description(extra.composite_key, catalog),
            actual_values=[resolve_value(v, catalog) for v in extra.actual_values],
        )
        for extra in report.extras
    ]

    return ReportTables(comparison=comparison, extras=extras, summary=report.summary)
