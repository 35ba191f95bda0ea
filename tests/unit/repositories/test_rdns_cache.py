"""Tests for the reverse-DNS cache repository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from acc_admin.core.errors import ErrorKind, UnsupportedOperationError
from acc_admin.repositories.rdns_cache import RDnsCacheEntry, RDnsCacheRepository

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class TestRDnsCache:
    @pytest.mark.asyncio
    async def test_insert_new_entry(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(return_value={"id": 9, "creation": NOW})
        entry = RDnsCacheEntry(address=" 192.0.2.10 ")
        entry.data = "host.example.org"

        await RDnsCacheRepository(mock_pool).save(entry)

        assert entry.id == 9
        assert entry.creation == NOW
        assert mock_conn.fetchrow.call_args[0][1:] == ("192.0.2.10", '"host.example.org"')

    @pytest.mark.asyncio
    async def test_saving_existing_entry_is_unsupported(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(
            return_value={
                "id": 9,
                "address": "192.0.2.10",
                "data": '"host.example.org"',
                "creation": NOW,
            }
        )
        repo = RDnsCacheRepository(mock_pool)
        entry = await repo.get_by_address("192.0.2.10")
        mock_conn.fetchrow.reset_mock()

        with pytest.raises(UnsupportedOperationError) as exc_info:
            await repo.save(entry)

        assert exc_info.value.kind == ErrorKind.UNSUPPORTED_OPERATION
        mock_conn.fetchrow.assert_not_called()
        mock_conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, mock_pool, mock_conn):
        mock_conn.fetchrow = AsyncMock(return_value=None)
        assert await RDnsCacheRepository(mock_pool).get_by_address("192.0.2.99") is None
