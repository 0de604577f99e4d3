"""Comparison result data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Verdict(str, Enum):
    MATCH = "Match"
    DIFFER = "Differ"
    MISSING = "Missing"


class ComparisonResult(BaseModel):
    """Outcome for one distinct expected composite key.

    ``matched_owners[i]`` configured ``actual_values[i]``.
    """

    baseline_owner: str
    baseline_owners: list[str] = []
    composite_key: str
    expected_value: Optional[str] = None
    matched_owners: list[str] = []
    actual_values: list[Optional[str]] = []
    verdict: Verdict


class ExtraSetting(BaseModel):
    composite_key: str
    configuring_owners: list[str] = []
    actual_values: list[Optional[str]] = []


class SummaryCounts(BaseModel):
    total: int = 0
    matches: int = 0
    differs: int = 0
    missing: int = 0
    extra: int = 0

    @property
    def has_drift(self) -> bool:
        return self.differs > 0 or self.missing > 0


class ComparisonReport(BaseModel):
    results: list[ComparisonResult] = []
    extras: list[ExtraSetting] = []
    summary: SummaryCounts = SummaryCounts()
