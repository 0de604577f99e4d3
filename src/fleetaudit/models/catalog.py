"""Reference catalog data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CatalogEntry(BaseModel):
    """One setting definition or enumerated value from the reference catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    description: str = ""
    platform: Optional[str] = None
    keywords: list[str] = []
    value_options: dict[str, str] = {}


CatalogDictionary = dict[str, CatalogEntry]
