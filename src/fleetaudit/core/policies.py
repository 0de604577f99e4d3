"""Policy acquisition: remote fetch through the Graph client or offline exports.

Policy types are resolved through ``POLICY_TYPES``, a registry mapping the
policy-type selector to the query strategy used against the service.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..client.graph import GraphClient
from ..errors import BaselineLoadError, GraphRequestError
from ..models.run import LoadedUnit, UnitKind, UnitOutcome
from .baselines import BASELINE_SUFFIXES, read_definition_file


@dataclass(frozen=True)
class PolicyType:
    key: str
    label: str
    predicate: Callable[[dict], bool] = lambda policy: True


def _template_family(policy: dict) -> str:
    ref = policy.get("templateReference")
    if isinstance(ref, Mapping):
        return str(ref.get("templateFamily") or "none")
    return "none"


POLICY_TYPES: dict[str, PolicyType] = {
    "settings-catalog": PolicyType(
        key="settings-catalog",
        label="Settings catalog",
        predicate=lambda policy: _template_family(policy) == "none",
    ),
    "endpoint-security": PolicyType(
        key="endpoint-security",
        label="Endpoint security",
        predicate=lambda policy: _template_family(policy).startswith("endpointSecurity"),
    ),
    "security-baseline": PolicyType(
        key="security-baseline",
        label="Security baseline",
        predicate=lambda policy: _template_family(policy) == "baseline",
    ),
    "all": PolicyType(key="all", label="All configuration policies"),
}


def get_policy_type(key: str) -> PolicyType:
    policy_type = POLICY_TYPES.get(key)
    if policy_type is None:
        raise ValueError(f"Unknown policy type: {key}")
    return policy_type


def policy_name(policy: Mapping) -> str:
    return str(policy.get("name") or policy.get("displayName") or policy.get("id") or "unnamed")


def select_policies(policies: list[dict], names: Optional[list[str]]) -> list[dict]:
    """Keep policies whose name or id matches one of names (case-insensitive)."""
    if not names:
        return policies
    wanted = {n.lower() for n in names}
    return [
        p for p in policies
        if policy_name(p).lower() in wanted or str(p.get("id", "")).lower() in wanted
    ]


async def fetch_remote_policies(
    client: GraphClient,
    policy_type: PolicyType,
    names: Optional[list[str]] = None,
) -> list[UnitOutcome[LoadedUnit]]:
    """Fetch selected policies and their settings, one outcome per policy.

    Raises GraphRequestError if the policy list itself cannot be fetched.
    """
    policies = await client.list_policies()
    policies = [p for p in policies if policy_type.predicate(p)]
    policies = select_policies(policies, names)

    outcomes: list[UnitOutcome[LoadedUnit]] = []
    for policy in policies:
        name = policy_name(policy)
        policy_id = str(policy.get("id") or "")
        if not policy_id:
            outcomes.append(UnitOutcome.failure(UnitKind.POLICY, name, "Policy has no id"))
            continue
        try:
            settings = await client.get_policy_settings(policy_id)
        except GraphRequestError as e:
            outcomes.append(UnitOutcome.failure(UnitKind.POLICY, name, str(e)))
            continue
        outcomes.append(UnitOutcome.success(
            UnitKind.POLICY,
            name,
            LoadedUnit(owner_id=name, source=policy_id, settings=settings),
        ))
    return outcomes


def _policies_in_document(data: object) -> list[Mapping]:
    # A single policy, a list of policies, or a Graph page {"value": [...]}
    if isinstance(data, Mapping):
        if isinstance(data.get("value"), list):
            return [p for p in data["value"] if isinstance(p, Mapping)]
        return [data]
    if isinstance(data, list):
        return [p for p in data if isinstance(p, Mapping)]
    return []


def load_policy_exports(
    path: Path,
    names: Optional[list[str]] = None,
) -> list[UnitOutcome[LoadedUnit]]:
    """Load offline policy exports from a file or directory."""
    if path.is_dir():
        files = sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in BASELINE_SUFFIXES)
    elif path.is_file():
        files = [path]
    else:
        return [UnitOutcome.failure(UnitKind.POLICY, str(path), "Policy export path does not exist")]

    outcomes: list[UnitOutcome[LoadedUnit]] = []
    for file in files:
        try:
            data = read_definition_file(file)
        except BaselineLoadError as e:
            outcomes.append(UnitOutcome.failure(UnitKind.POLICY, file.name, str(e)))
            continue

        documents = _policies_in_document(data)
        if not documents:
            outcomes.append(UnitOutcome.failure(UnitKind.POLICY, file.name, "No policies in export"))
            continue

        for policy in select_policies([dict(d) for d in documents], names):
            name = policy_name(policy)
            settings = policy.get("settings")
            if not isinstance(settings, list):
                outcomes.append(UnitOutcome.failure(UnitKind.POLICY, name, "Policy export has no settings list"))
                continue
            outcomes.append(UnitOutcome.success(
                UnitKind.POLICY,
                name,
                LoadedUnit(owner_id=name, source=str(file), settings=settings),
            ))
    return outcomes


def export_policies(units: list[LoadedUnit], output_dir: Path) -> list[Path]:
    """Write fetched policies as JSON exports usable with --policies."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for unit in units:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in unit.owner_id) or "policy"
        path = output_dir / f"{safe}.json"
        path.write_text(
            json.dumps(
                {"id": unit.source, "name": unit.owner_id, "settings": unit.settings},
                indent=2,
                ensure_ascii=False,
            ),
            encoding="utf-8",
        )
        written.append(path)
    return written
