"""Baseline bundle loading.

A baseline bundle is a directory of definition files (JSON or YAML). Each file
holds one policy-shaped definition whose settings are the expected values.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ..errors import BaselineLoadError
from ..models.run import LoadedUnit, UnitKind, UnitOutcome

BASELINE_SUFFIXES = (".json", ".yaml", ".yml")


def read_definition_file(path: Path) -> Any:
    """Parse a JSON or YAML definition file."""
    try:
        content = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise BaselineLoadError(f"Cannot read {path.name}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise BaselineLoadError(f"Cannot parse {path.name}: {e}") from e


def _owner_name(data: Mapping, fallback: str) -> str:
    return str(data.get("name") or data.get("displayName") or fallback)


def definition_to_unit(data: Any, fallback_owner: str, source: str = "") -> LoadedUnit:
    """Interpret a parsed definition as an owner plus raw setting instances.

    Accepted shapes: a policy export ({"name", "settings": [...]}), a bare list
    of setting instances, or a single setting instance.
    """
    if isinstance(data, list):
        return LoadedUnit(owner_id=fallback_owner, source=source, settings=data)

    if not isinstance(data, Mapping):
        raise BaselineLoadError(f"Unsupported definition root in {source or fallback_owner}")

    if "settings" in data:
        settings = data.get("settings") or []
        if not isinstance(settings, list):
            raise BaselineLoadError(f"'settings' is not a list in {source or fallback_owner}")
        return LoadedUnit(owner_id=_owner_name(data, fallback_owner), source=source, settings=settings)

    if "settingInstance" in data or "settingDefinitionId" in data:
        return LoadedUnit(owner_id=fallback_owner, source=source, settings=[dict(data)])

    raise BaselineLoadError(f"No settings found in {source or fallback_owner}")


def load_baseline_file(path: Path, bundle_name: str) -> LoadedUnit:
    data = read_definition_file(path)
    return definition_to_unit(data, fallback_owner=bundle_name, source=str(path))


def iter_definition_files(bundle_dir: Path) -> list[Path]:
    """Definition files of a bundle, sorted by name for a stable merge order."""
    return sorted(
        p for p in bundle_dir.rglob("*")
        if p.is_file() and p.suffix.lower() in BASELINE_SUFFIXES
    )


def load_baseline_bundle(bundle_dir: Path) -> list[UnitOutcome[LoadedUnit]]:
    """Load every definition file of a bundle, one outcome per file."""
    bundle_name = bundle_dir.name

    if bundle_dir.is_file():
        files = [bundle_dir]
        bundle_name = bundle_dir.parent.name or bundle_dir.stem
    elif bundle_dir.is_dir():
        files = iter_definition_files(bundle_dir)
    else:
        return [UnitOutcome.failure(UnitKind.BASELINE, str(bundle_dir), "Baseline path does not exist")]

    if not files:
        return [UnitOutcome.failure(UnitKind.BASELINE, bundle_name, "No definition files in bundle")]

    outcomes: list[UnitOutcome[LoadedUnit]] = []
    for path in files:
        unit_name = f"{bundle_name}/{path.name}"
        try:
            unit = load_baseline_file(path, bundle_name)
        except BaselineLoadError as e:
            outcomes.append(UnitOutcome.failure(UnitKind.BASELINE, unit_name, str(e)))
            continue
        outcomes.append(UnitOutcome.success(UnitKind.BASELINE, unit_name, unit))
    return outcomes


def get_available_baselines(baselines_dir: Path) -> list[dict]:
    """List bundle directories under a baselines root."""
    bundles: list[dict] = []
    if not baselines_dir.is_dir():
        return bundles
    for child in sorted(baselines_dir.iterdir()):
        if child.is_dir() and not child.name.startswith("."):
            bundles.append({
                "name": child.name,
                "path": str(child),
                "files": len(iter_definition_files(child)),
            })
    return bundles
