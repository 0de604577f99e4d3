"""3-layer configuration system for fleetaudit.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.fleetaudit/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml

CONFIG_DIR = ".fleetaudit"

DEFAULT_CONFIG: dict = {
    "graph": {
        "base_url": "https://graph.microsoft.com/beta",
        "token_env": "FLEETAUDIT_GRAPH_TOKEN",
        "timeout_seconds": 60,
        "retry_attempts": 3,
        "retry_delay_seconds": 5,
        "page_size": 100,
    },
    "audit": {
        "policy_type": "settings-catalog",
        "collection_keys": "indexed",
        "policies": [],
    },
    "catalog": {
        "cache_path": "~/.fleetaudit/catalog.json",
        "max_age_days": 30,
    },
    "output": {
        "format": "markdown",
        "path": "",
    },
    "ci": {
        "exit_codes": {"clean": 0, "drift": 1},
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .fleetaudit/config.yaml."""
    config_path = project_path / CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content)
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for an audit run."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)

    return config


def get_catalog_cache_path(config: dict) -> Path:
    """Resolve the catalog cache path; relative paths are project-relative."""
    raw = (config.get("catalog") or {}).get("cache_path") or DEFAULT_CONFIG["catalog"]["cache_path"]
    path = Path(str(raw)).expanduser()
    if not path.is_absolute():
        path = Path(config.get("_project_path", ".")) / path
    return path


def initialize_project(project_path: Path) -> Path:
    """Create .fleetaudit/ with a starter config.yaml. Existing config is kept."""
    cfg_dir = project_path / CONFIG_DIR
    (cfg_dir / "reports").mkdir(parents=True, exist_ok=True)

    config_path = cfg_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# fleetaudit project configuration\n"
            "\n"
            "graph:\n"
            "  token_env: FLEETAUDIT_GRAPH_TOKEN\n"
            "\n"
            "audit:\n"
            "  policy_type: settings-catalog\n"
            "  collection_keys: indexed\n"
            "  # policies: [\"Windows - Defender\"]\n"
            "\n"
            "catalog:\n"
            "  cache_path: ~/.fleetaudit/catalog.json\n",
            encoding="utf-8",
        )
    return config_path
