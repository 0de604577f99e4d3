"""Display resolution: raw ids and values to human-readable labels.

Lookups never raise. A catalog miss falls back to the raw text, and text that is
clearly not a catalog key (free text, serialized lists, very long strings) skips
the lookup and is rendered through the raw-value safety net.
"""

from __future__ import annotations

import re
from typing import Optional

from ..models.catalog import CatalogDictionary
from .flatten import KEY_SEPARATOR

MAX_DISPLAY_LENGTH = 200

_INSTANCE_SUFFIX = re.compile(r"^(.*?)(\[\d+\])$")


def is_key_like(text: str) -> bool:
    """True if text could plausibly be a catalog id."""
    if not text or len(text) > MAX_DISPLAY_LENGTH:
        return False
    if text[0] in "[{":
        return False
    return not any(ch.isspace() for ch in text)


def render_raw(text: str) -> str:
    """Render text that bypassed the catalog, truncating when too long."""
    if len(text) <= MAX_DISPLAY_LENGTH:
        return text
    return f"{text[:MAX_DISPLAY_LENGTH]}… [raw value, {len(text)} chars]"


def resolve_label(setting_id: str, catalog: CatalogDictionary) -> str:
    """Catalog display name for an id, or the id itself on a miss."""
    if not setting_id:
        return ""
    if not is_key_like(setting_id):
        return render_raw(setting_id)
    entry = catalog.get(setting_id)
    if entry is None or not entry.display_name:
        return setting_id
    return entry.display_name


def resolve_description(setting_id: str, catalog: CatalogDictionary) -> str:
    """Catalog description for an id, or "" on a miss."""
    if not setting_id or not is_key_like(setting_id):
        return ""
    entry = catalog.get(setting_id)
    return entry.description if entry else ""


def _resolve_segment(segment: str, catalog: CatalogDictionary) -> str:
    # Group-collection instances carry an [n] suffix that is not part of the id
    m = _INSTANCE_SUFFIX.match(segment)
    if m and m.group(1):
        return resolve_label(m.group(1), catalog) + m.group(2)
    return resolve_label(segment, catalog)


def resolve_composite_label(composite_key: str, catalog: CatalogDictionary) -> str:
    """Resolve each segment of a composite key independently and rejoin them."""
    if not composite_key:
        return ""
    return KEY_SEPARATOR.join(
        _resolve_segment(segment, catalog) for segment in composite_key.split(KEY_SEPARATOR)
    )


def resolve_composite_description(composite_key: str, catalog: CatalogDictionary) -> str:
    """Description of the leaf segment of a composite key."""
    if not composite_key:
        return ""
    leaf = composite_key.split(KEY_SEPARATOR)[-1]
    m = _INSTANCE_SUFFIX.match(leaf)
    if m and m.group(1):
        leaf = m.group(1)
    return resolve_description(leaf, catalog)


def resolve_value(value: Optional[str], catalog: CatalogDictionary) -> str:
    """Friendly rendering of a setting value.

    Enumerated value ids resolve through the catalog; everything else is shown
    as-is (truncated when too long). None renders as "".
    """
    if value is None:
        return ""
    return resolve_label(value, catalog)
