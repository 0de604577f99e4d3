"""Audit session: explicit per-run state passed to every stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..models.catalog import CatalogDictionary
from ..models.run import SkippedUnit, UnitKind, UnitOutcome
from ..utils.sanitize import sanitize_error
from .config import get_catalog_cache_path


@dataclass
class AuditSession:
    config: dict
    policy_type: str = "settings-catalog"
    collection_keys: str = "indexed"
    policies: list[str] = field(default_factory=list)
    catalog: CatalogDictionary = field(default_factory=dict)
    skipped: list[SkippedUnit] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: dict) -> "AuditSession":
        audit = config.get("audit") or {}
        return cls(
            config=config,
            policy_type=audit.get("policy_type") or "settings-catalog",
            collection_keys=audit.get("collection_keys") or "indexed",
            policies=[str(p) for p in audit.get("policies") or []],
        )

    @property
    def catalog_cache_path(self) -> Path:
        return get_catalog_cache_path(self.config)

    def skip(self, kind: UnitKind, name: str, reason: str, fatal: bool = False) -> SkippedUnit:
        unit = SkippedUnit(kind=kind, name=name, reason=sanitize_error(reason), fatal=fatal)
        self.skipped.append(unit)
        return unit

    def collect(self, outcomes: list[UnitOutcome]) -> list:
        """Record failed outcomes as skipped units and return the successful values."""
        values = []
        for outcome in outcomes:
            if outcome.ok:
                values.append(outcome.value)
            else:
                self.skip(outcome.kind, outcome.name, outcome.error or "")
        return values

    @property
    def fatal(self) -> Optional[SkippedUnit]:
        return next((s for s in self.skipped if s.fatal), None)
