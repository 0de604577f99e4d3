"""Tests for core/catalog.py."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from fleetaudit.core.catalog import (
    build_catalog_dictionary,
    catalog_cache_age_days,
    invalidate_catalog_cache,
    load_catalog,
    load_catalog_cache,
    save_catalog_cache,
)
from fleetaudit.core.config import get_effective_config
from fleetaudit.core.session import AuditSession
from fleetaudit.errors import CatalogUnavailableError, GraphRequestError


class TestBuildCatalogDictionary:
    def test_indexes_settings(self, catalog):
        entry = catalog["defender_allowrealtimemonitoring"]
        assert entry.display_name == "Allow Realtime Monitoring"
        assert entry.description.startswith("Allows")
        assert entry.platform == "windows10"
        assert entry.keywords == ["Defender"]

    def test_options_are_first_class_entries(self, catalog):
        assert catalog["defender_allowrealtimemonitoring_0"].display_name == "Not allowed"
        assert catalog["defender_allowrealtimemonitoring_1"].display_name == "Allowed"

    def test_value_options_on_parent(self, catalog):
        options = catalog["bitlocker_requiredeviceencryption"].value_options
        assert options == {
            "bitlocker_requiredeviceencryption_0": "Disabled",
            "bitlocker_requiredeviceencryption_1": "Enabled",
        }

    def test_flat_value_options_shape(self):
        catalog = build_catalog_dictionary([
            {"id": "s", "displayName": "S", "valueOptions": {"s_0": "Off", "s_1": "On"}},
        ])
        assert catalog["s_1"].display_name == "On"
        assert catalog["s"].value_options == {"s_0": "Off", "s_1": "On"}

    def test_last_record_wins(self):
        catalog = build_catalog_dictionary([
            {"id": "dup", "displayName": "First"},
            {"id": "dup", "displayName": "Second"},
        ])
        assert catalog["dup"].display_name == "Second"

    def test_malformed_records_skipped(self):
        catalog = build_catalog_dictionary([
            "not a record",
            {"displayName": "No id"},
            {"id": "", "displayName": "Empty id"},
            {"id": "ok"},
        ])
        assert list(catalog) == ["ok"]

    def test_display_name_falls_back(self):
        catalog = build_catalog_dictionary([{"id": "a", "name": "Named"}, {"id": "b"}])
        assert catalog["a"].display_name == "Named"
        assert catalog["b"].display_name == "b"

    def test_empty_input(self):
        assert build_catalog_dictionary([]) == {}
        assert build_catalog_dictionary(None) == {}


class TestCatalogCache:
    def test_save_and_load(self, tmp_path: Path, catalog_records):
        path = save_catalog_cache(tmp_path / "cache" / "catalog.json", catalog_records)
        assert path.exists()
        assert load_catalog_cache(path) == catalog_records

    def test_missing_file(self, tmp_path: Path):
        assert load_catalog_cache(tmp_path / "missing.json") is None

    def test_corrupt_file(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_catalog_cache(path) is None

    def test_empty_records_treated_as_absent(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"records": []}), encoding="utf-8")
        assert load_catalog_cache(path) is None

    def test_bare_list_accepted(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{"id": "a"}]), encoding="utf-8")
        assert load_catalog_cache(path) == [{"id": "a"}]

    def test_invalidate(self, tmp_path: Path, catalog_records):
        path = save_catalog_cache(tmp_path / "catalog.json", catalog_records)
        assert invalidate_catalog_cache(path) is True
        assert not path.exists()
        assert invalidate_catalog_cache(path) is False

    def test_age_of_fresh_cache(self, tmp_path: Path, catalog_records):
        path = save_catalog_cache(tmp_path / "catalog.json", catalog_records)
        assert catalog_cache_age_days(path) == 0

    def test_age_of_old_cache(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"generated_at": "2000-01-01T00:00:00Z", "records": [{"id": "a"}]}), encoding="utf-8")
        assert catalog_cache_age_days(path) > 365

    def test_age_unknown_without_stamp(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{"id": "a"}]), encoding="utf-8")
        assert catalog_cache_age_days(path) is None


class TestLoadCatalog:
    @pytest.fixture
    def session(self, project: Path) -> AuditSession:
        return AuditSession.from_config(get_effective_config(project))

    @pytest.fixture
    def empty_session(self, tmp_path: Path) -> AuditSession:
        config = get_effective_config(tmp_path)
        config["catalog"]["cache_path"] = str(tmp_path / "nocache" / "catalog.json")
        return AuditSession.from_config(config)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_remote(self, session: AuditSession):
        client = MagicMock()
        client.fetch_catalog = AsyncMock()
        catalog, source = await load_catalog(session, client)
        assert source == "cache"
        assert "laps_passwordlength" in catalog
        client.fetch_catalog.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_saves(self, empty_session: AuditSession):
        client = MagicMock()
        client.fetch_catalog = AsyncMock(return_value=[{"id": "remote_setting", "displayName": "Remote"}])
        catalog, source = await load_catalog(empty_session, client)
        assert source == "remote"
        assert catalog["remote_setting"].display_name == "Remote"
        assert load_catalog_cache(empty_session.catalog_cache_path) == [
            {"id": "remote_setting", "displayName": "Remote"},
        ]

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, session: AuditSession):
        client = MagicMock()
        client.fetch_catalog = AsyncMock(return_value=[{"id": "fresh"}])
        catalog, source = await load_catalog(session, client, refresh=True)
        assert source == "remote"
        assert list(catalog) == ["fresh"]

    @pytest.mark.asyncio
    async def test_no_cache_no_client(self, empty_session: AuditSession):
        with pytest.raises(CatalogUnavailableError):
            await load_catalog(empty_session, None)

    @pytest.mark.asyncio
    async def test_remote_failure(self, empty_session: AuditSession):
        client = MagicMock()
        client.fetch_catalog = AsyncMock(side_effect=GraphRequestError("503 | unavailable", status_code=503))
        with pytest.raises(CatalogUnavailableError):
            await load_catalog(empty_session, client)

    @pytest.mark.asyncio
    async def test_remote_empty(self, empty_session: AuditSession):
        client = MagicMock()
        client.fetch_catalog = AsyncMock(return_value=[])
        with pytest.raises(CatalogUnavailableError):
            await load_catalog(empty_session, client)
        assert not empty_session.catalog_cache_path.exists()
