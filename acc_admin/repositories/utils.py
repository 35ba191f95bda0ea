"""Utility functions for repository operations."""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union


def ensure_json(value: Optional[Union[str, dict, list]]) -> Optional[Union[dict, list]]:
    """
    Normalize JSONB values from database to Python dict/list.

    asyncpg returns JSONB as str unless a codec is configured.

    Raises:
        TypeError: If value is an unexpected type
        json.JSONDecodeError: If string is not valid JSON
    """
    if value is None:
        return None

    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        return json.loads(value)

    raise TypeError(
        f"Expected str, dict, list, or None for JSONB value, got {type(value).__name__}"
    )


def parse_jsonb_fields(row_dict: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Parse JSONB fields of a row dict in place and return it."""
    for field in fields:
        if field in row_dict and row_dict[field] is not None:
            row_dict[field] = ensure_json(row_dict[field])
    return row_dict


def rows_affected(command_status: Optional[str]) -> int:
    """
    Parse the row count from an asyncpg command status.

    "UPDATE 1" -> 1, "INSERT 0 3" -> 3, None -> 0.
    """
    if not command_status:
        return 0
    try:
        return int(command_status.split()[-1])
    except ValueError:
        return 0


@asynccontextmanager
async def acquire(pool, conn=None) -> AsyncIterator[Any]:
    """
    Yield ``conn`` if the caller already holds one, else a pooled connection.

    Lets repository writes join a caller-owned transaction.
    """
    if conn is not None:
        yield conn
        return
    async with pool.acquire() as pooled:
        yield pooled
