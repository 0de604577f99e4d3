"""Audit run data models: per-unit outcomes and skipped units."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class UnitKind(str, Enum):
    POLICY = "policy"
    BASELINE = "baseline"
    CATALOG = "catalog"


@dataclass
class UnitOutcome(Generic[T]):
    """Result of loading one independent input unit (a policy, a baseline file)."""

    kind: UnitKind
    name: str
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, kind: UnitKind, name: str, value: T) -> "UnitOutcome[T]":
        return cls(kind=kind, name=name, value=value)

    @classmethod
    def failure(cls, kind: UnitKind, name: str, error: str) -> "UnitOutcome[T]":
        return cls(kind=kind, name=name, error=error or "unknown error")


class SkippedUnit(BaseModel):
    kind: UnitKind
    name: str
    reason: str
    fatal: bool = False


class LoadedUnit(BaseModel):
    """A successfully loaded input: its owner name and raw setting instances."""

    owner_id: str
    source: str = ""
    settings: list[Any] = []
