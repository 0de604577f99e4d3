"""Reference catalog indexing and the read-through catalog cache.

The catalog maps setting-definition ids and enumerated value ids to display
metadata. Both namespaces share one dictionary so a lookup never needs to know
which kind of id it holds.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ..errors import CatalogUnavailableError, GraphRequestError
from ..models.catalog import CatalogDictionary, CatalogEntry

if TYPE_CHECKING:
    from ..client.graph import GraphClient
    from .session import AuditSession


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _keywords(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, Iterable):
        return [str(k) for k in value if k]
    return []


def _platform(record: Mapping) -> Optional[str]:
    platform = record.get("platform")
    if platform:
        return str(platform)
    applicability = record.get("applicability")
    if isinstance(applicability, Mapping) and applicability.get("platform"):
        return str(applicability["platform"])
    return None


def _display_name(record: Mapping, fallback: str) -> str:
    return _text(record.get("displayName") or record.get("name")) or fallback


def _iter_options(record: Mapping) -> list[tuple[str, str, str]]:
    """Yield (value_id, label, description) for every enumerated value of a record."""
    options: list[tuple[str, str, str]] = []

    # Graph shape: options -> [{itemId, displayName, description}]
    raw_options = record.get("options")
    if isinstance(raw_options, Iterable) and not isinstance(raw_options, (str, Mapping)):
        for option in raw_options:
            if not isinstance(option, Mapping):
                continue
            value_id = _text(option.get("itemId") or option.get("id"))
            if not value_id:
                continue
            options.append((
                value_id,
                _display_name(option, value_id),
                _text(option.get("description")),
            ))

    # Flat shape: valueOptions -> {valueId: label}
    value_options = record.get("valueOptions")
    if isinstance(value_options, Mapping):
        for value_id, label in value_options.items():
            if value_id:
                options.append((str(value_id), _text(label) or str(value_id), ""))

    return options


def build_catalog_dictionary(raw_catalog: Iterable[Any]) -> CatalogDictionary:
    """Index a raw catalog export by id.

    Every record becomes a ``CatalogEntry``; every enumerated value of a record is
    also inserted under its own value id. Records without an id are skipped.
    When an id appears more than once, the last record wins.
    """
    catalog: CatalogDictionary = {}

    for record in raw_catalog or []:
        if not isinstance(record, Mapping):
            continue
        setting_id = _text(record.get("id"))
        if not setting_id:
            continue

        platform = _platform(record)
        options = _iter_options(record)

        for value_id, label, description in options:
            catalog[value_id] = CatalogEntry(
                id=value_id,
                display_name=label,
                description=description,
                platform=platform,
            )

        catalog[setting_id] = CatalogEntry(
            id=setting_id,
            display_name=_display_name(record, setting_id),
            description=_text(record.get("description")),
            platform=platform,
            keywords=_keywords(record.get("keywords")),
            value_options={value_id: label for value_id, label, _ in options},
        )

    return catalog


# ---------------------------------------------------------------------------
# Catalog cache
# ---------------------------------------------------------------------------


def load_catalog_cache(cache_path: Path) -> Optional[list[dict]]:
    """Load raw catalog records from the cache file, or None if absent/unreadable."""
    if not cache_path.exists():
        return None
    try:
        data = json.loads(cache_path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError):
        return None

    if isinstance(data, Mapping):
        records = data.get("records")
    else:
        records = data
    if not isinstance(records, list) or not records:
        return None
    return records


def save_catalog_cache(cache_path: Path, records: list[dict]) -> Path:
    """Write raw catalog records to the cache file (UTF-8, no BOM)."""
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "records": records,
    }
    cache_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return cache_path


def invalidate_catalog_cache(cache_path: Path) -> bool:
    """Delete the cache file. Returns True if a file was removed."""
    if not cache_path.exists():
        return False
    cache_path.unlink()
    return True


def catalog_cache_age_days(cache_path: Path) -> Optional[int]:
    """Age of the cache in whole days, from its generated_at stamp."""
    try:
        data = json.loads(cache_path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, Mapping) or not data.get("generated_at"):
        return None
    try:
        generated = datetime.fromisoformat(str(data["generated_at"]).replace("Z", "+00:00"))
    except ValueError:
        return None
    if generated.tzinfo is None:
        generated = generated.replace(tzinfo=timezone.utc)
    return (datetime.now(timezone.utc) - generated).days


async def load_catalog(
    session: "AuditSession",
    client: Optional["GraphClient"] = None,
    refresh: bool = False,
) -> tuple[CatalogDictionary, str]:
    """Read-through catalog load. Returns (catalog, source).

    source is "cache" or "remote". Raises CatalogUnavailableError when neither
    produces any records.
    """
    cache_path = session.catalog_cache_path

    records = None if refresh else load_catalog_cache(cache_path)
    if records:
        return build_catalog_dictionary(records), "cache"

    if client is None:
        raise CatalogUnavailableError(
            f"No catalog cache at {cache_path} and no remote client configured"
        )

    try:
        records = await client.fetch_catalog()
    except GraphRequestError as e:
        raise CatalogUnavailableError(f"Catalog fetch failed: {e}") from e

    if not records:
        raise CatalogUnavailableError("Remote catalog fetch returned no records")

    save_catalog_cache(cache_path, records)
    return build_catalog_dictionary(records), "remote"
