from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from aiosqlitepool import SQLiteConnectionPool


async def run_in_transaction(conn, func, *args, **kwargs):
    """Execute the given coroutine within a transaction."""
    try:
        result = await func(*args, **kwargs)
        await conn.commit()
        return result
    except Exception:
        if conn.in_transaction:
            await conn.rollback()
        raise


def placeholders(values: Sequence[Any]) -> str:
    """Return a ``?, ?, ...`` list sized for ``values``."""

    return ",".join("?" * len(values))


def like_pattern(text: str) -> str:
    """Return a LIKE pattern matching ``text`` anywhere, for use with ESCAPE '\\'."""

    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def row_to_dict(row, *, bool_columns: tuple[str, ...] = ()) -> dict[str, Any]:
    record = dict(row)
    for column in bool_columns:
        if column in record and record[column] is not None:
            record[column] = bool(record[column])
    return record


class BaseRepository:
    """Common functionality shared by repository classes."""

    def __init__(self, pool: SQLiteConnectionPool):
        self.pool = pool

    async def _run_in_transaction(self, conn, func, *args, **kwargs):
        return await run_in_transaction(conn, func, *args, **kwargs)
