"""Baseline comparison engine.

Compares flattened expected settings (from baselines) against flattened actual
settings (from policies) key by key.

- Missing: no policy configures the key
- Match: every configuring policy uses the expected value
- Differ: at least one configuring policy uses another value
"""

from __future__ import annotations

from collections.abc import Iterable

from ..models.comparison import ComparisonReport, ComparisonResult, ExtraSetting, SummaryCounts, Verdict
from ..models.setting import FlattenedSetting
from .flatten import is_unidentified_key


def group_by_key(settings: Iterable[FlattenedSetting]) -> dict[str, list[FlattenedSetting]]:
    """Group entries by composite key, keeping first-appearance order."""
    grouped: dict[str, list[FlattenedSetting]] = {}
    for setting in settings:
        grouped.setdefault(setting.composite_key, []).append(setting)
    return grouped


def merge_flattened(*lists: Iterable[FlattenedSetting]) -> list[FlattenedSetting]:
    """Concatenate flattened lists from several units into one comparison input."""
    merged: list[FlattenedSetting] = []
    for settings in lists:
        merged.extend(settings)
    return merged


def _distinct(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def calculate_verdict(expected_value: str | None, actual_values: list[str | None]) -> Verdict:
    if not actual_values:
        return Verdict.MISSING
    if all(value == expected_value for value in actual_values):
        return Verdict.MATCH
    return Verdict.DIFFER


def compare(
    expected: Iterable[FlattenedSetting],
    actual: Iterable[FlattenedSetting],
) -> ComparisonReport:
    """Compare expected against actual settings.

    Produces one ComparisonResult per distinct expected key. When several
    baseline entries share a key, the first supplies the expected value.
    Actual entries sharing a key are all reported, never collapsed. Keys with an
    unidentified segment never match: expected ones are Missing, actual ones Extra.
    """
    expected_by_key = group_by_key(expected)
    actual_by_key = group_by_key(actual)

    results: list[ComparisonResult] = []
    counts = {Verdict.MATCH: 0, Verdict.DIFFER: 0, Verdict.MISSING: 0}

    for key, expected_entries in expected_by_key.items():
        first = expected_entries[0]
        # An unreadable setting is never satisfied by another unreadable one
        configured = [] if is_unidentified_key(key) else actual_by_key.get(key, [])
        actual_values = [entry.value for entry in configured]
        verdict = calculate_verdict(first.value, actual_values)
        counts[verdict] += 1

        results.append(ComparisonResult(
            baseline_owner=first.owner_id,
            baseline_owners=_distinct(entry.owner_id for entry in expected_entries),
            composite_key=key,
            expected_value=first.value,
            matched_owners=[entry.owner_id for entry in configured],
            actual_values=actual_values,
            verdict=verdict,
        ))

    extras: list[ExtraSetting] = []
    for key, configured in actual_by_key.items():
        if key in expected_by_key and not is_unidentified_key(key):
            continue
        extras.append(ExtraSetting(
            composite_key=key,
            configuring_owners=[entry.owner_id for entry in configured],
            actual_values=[entry.value for entry in configured],
        ))

    summary = SummaryCounts(
        total=len(results),
        matches=counts[Verdict.MATCH],
        differs=counts[Verdict.DIFFER],
        missing=counts[Verdict.MISSING],
        extra=len(extras),
    )

    return ComparisonReport(results=results, extras=extras, summary=summary)
