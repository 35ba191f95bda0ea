"""Tests for the geolocation cache repository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.repositories.geolocation import GeoLocation, GeoLocationRepository

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_row(**overrides):
    row = {
        "id": 5,
        "address": "203.0.113.5",
        "data": '{"city": "Exampleville"}',
        "creation": NOW,
        "last_update": NOW,
        "update_version": 2,
    }
    row.update(overrides)
    return row


class TestGetByAddress:
    @pytest.mark.asyncio
    async def test_lookup_trims_address(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(return_value=make_row())

        entry = await GeoLocationRepository(mock_pool).get_by_address("  203.0.113.5 \n")

        assert entry.address == "203.0.113.5"
        assert entry.data == {"city": "Exampleville"}
        assert mock_conn.fetchrow.call_args[0][1] == "203.0.113.5"

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(return_value=None)
        assert await GeoLocationRepository(mock_pool).get_by_address("198.51.100.1") is None


class TestSave:
    @pytest.mark.asyncio
    async def test_insert_then_lookup_returns_same_payload(self, mock_pool, mock_conn):
        """A miss, then a save, then a hit with the saved payload."""
        repo = GeoLocationRepository(mock_pool)
        mock_conn.fetchrow = AsyncMock(
            side_effect=[
                None,
                {"id": 5, "creation": NOW, "last_update": NOW, "update_version": 0},
                make_row(update_version=0),
            ]
        )

        assert await repo.get_by_address("203.0.113.5") is None

        entry = GeoLocation(address="203.0.113.5")
        entry.data = {"city": "Exampleville"}
        await repo.save(entry)
        assert entry.id == 5
        assert entry.update_version == 0

        insert_args = mock_conn.fetchrow.call_args_list[1][0]
        assert "INSERT INTO geolocation" in insert_args[0]
        assert insert_args[1:] == ("203.0.113.5", '{"city": "Exampleville"}')

        found = await repo.get_by_address("203.0.113.5")
        assert found.data == entry.data

    @pytest.mark.asyncio
    async def test_update_with_current_version(self, mock_pool, mock_conn):
        later = datetime(2024, 6, 1, tzinfo=timezone.utc)
        mock_conn.fetchrow = AsyncMock(return_value={"last_update": later})
        entry = GeoLocation.from_row(make_row())
        entry.data = {"city": "Elsewhere"}

        await GeoLocationRepository(mock_pool).save(entry)

        assert entry.update_version == 3
        assert entry.last_update == later
        query, entry_id, version = mock_conn.fetchrow.call_args[0][:3]
        assert "WHERE id = $1 AND update_version = $2" in query
        assert (entry_id, version) == (5, 2)

    @pytest.mark.asyncio
    async def test_update_with_stale_version_raises(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(return_value=None)
        entry = GeoLocation.from_row(make_row())

        with pytest.raises(OptimisticLockConflictError):
            await GeoLocationRepository(mock_pool).save(entry)

        assert entry.update_version == 2
