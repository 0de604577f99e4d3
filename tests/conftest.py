"""Shared fixtures for fleetaudit tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fleetaudit.core.catalog import build_catalog_dictionary, save_catalog_cache
from fleetaudit.models.catalog import CatalogDictionary

ODATA = "#microsoft.graph.deviceManagementConfiguration"


def _choice(definition_id: str, value: str, children: list | None = None) -> dict:
    return {
        "@odata.type": f"{ODATA}ChoiceSettingInstance",
        "settingDefinitionId": definition_id,
        "choiceSettingValue": {"value": value, "children": children or []},
    }


def _simple(definition_id: str, value, value_type: str = "IntegerSettingValue") -> dict:
    return {
        "@odata.type": f"{ODATA}SimpleSettingInstance",
        "settingDefinitionId": definition_id,
        "simpleSettingValue": {"@odata.type": f"{ODATA}{value_type}", "value": value},
    }


def _wrap(instances: list[dict]) -> list[dict]:
    """Wrap instances the way the policy /settings endpoint returns them."""
    return [{"id": str(i), "settingInstance": inst} for i, inst in enumerate(instances)]


@pytest.fixture
def catalog_records() -> list[dict]:
    """Return a small raw catalog export in the service's shape."""
    return [
        {
            "id": "defender_allowrealtimemonitoring",
            "displayName": "Allow Realtime Monitoring",
            "description": "Allows or disallows real-time monitoring.",
            "keywords": ["Defender"],
            "applicability": {"platform": "windows10"},
            "options": [
                {"itemId": "defender_allowrealtimemonitoring_0", "displayName": "Not allowed"},
                {"itemId": "defender_allowrealtimemonitoring_1", "displayName": "Allowed"},
            ],
        },
        {
            "id": "bitlocker_requiredeviceencryption",
            "displayName": "Require Device Encryption",
            "description": "Requires BitLocker encryption on the OS drive.",
            "options": [
                {"itemId": "bitlocker_requiredeviceencryption_0", "displayName": "Disabled"},
                {"itemId": "bitlocker_requiredeviceencryption_1", "displayName": "Enabled"},
            ],
        },
        {
            "id": "laps_passwordlength",
            "displayName": "Password Length",
            "description": "Configures the length of the managed local admin password.",
        },
        {
            "id": "defender_puaprotection",
            "displayName": "PUA Protection",
            "options": [
                {"itemId": "defender_puaprotection_1", "displayName": "On"},
            ],
        },
        {"id": "firewall_rules", "displayName": "Firewall Rules"},
        {"id": "firewall_rules_name", "displayName": "Name", "description": "Rule name."},
    ]


@pytest.fixture
def catalog(catalog_records: list[dict]) -> CatalogDictionary:
    return build_catalog_dictionary(catalog_records)


@pytest.fixture
def baseline_definition() -> dict:
    """Return a baseline definition file body (policy export shape)."""
    return {
        "name": "Windows Security Baseline",
        "settings": _wrap([
            _choice("defender_allowrealtimemonitoring", "defender_allowrealtimemonitoring_1"),
            _simple("laps_passwordlength", 14),
            _choice("bitlocker_requiredeviceencryption", "bitlocker_requiredeviceencryption_1"),
        ]),
    }


@pytest.fixture
def policy_export() -> dict:
    """Return a policy export: one match, one differ, one missing, one extra."""
    return {
        "id": "c0ffee00-0000-0000-0000-000000000001",
        "name": "Windows - Defender",
        "settings": _wrap([
            _choice("defender_allowrealtimemonitoring", "defender_allowrealtimemonitoring_1"),
            _simple("laps_passwordlength", 8),
            _choice("defender_puaprotection", "defender_puaprotection_1"),
        ]),
    }


@pytest.fixture
def baseline_bundle(tmp_path: Path, baseline_definition: dict) -> Path:
    bundle = tmp_path / "baselines" / "windows-security"
    bundle.mkdir(parents=True)
    (bundle / "defender.json").write_text(json.dumps(baseline_definition), encoding="utf-8")
    return bundle


@pytest.fixture
def policies_dir(tmp_path: Path, policy_export: dict) -> Path:
    exports = tmp_path / "exports"
    exports.mkdir()
    (exports / "defender.json").write_text(json.dumps(policy_export), encoding="utf-8")
    return exports


@pytest.fixture
def project(tmp_path: Path, catalog_records: list[dict]) -> Path:
    """Create a project whose catalog cache lives inside the project."""
    project = tmp_path / "audit-project"
    cfg_dir = project / ".fleetaudit"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "config.yaml").write_text(
        "catalog:\n  cache_path: .fleetaudit/catalog.json\n",
        encoding="utf-8",
    )
    save_catalog_cache(cfg_dir / "catalog.json", catalog_records)
    return project
