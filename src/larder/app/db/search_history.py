from __future__ import annotations

from aiosqlitepool import SQLiteConnectionPool

from .base import BaseRepository


class SearchHistoryRepository(BaseRepository):
    """Persist and retrieve per-user recipe search history."""

    def __init__(self, pool: SQLiteConnectionPool, *, max_entries: int = 50) -> None:
        super().__init__(pool)
        self._max_entries = max(1, max_entries)

    async def record_search(self, user_id: str, query: str, results_count: int) -> None:
        """Store or bump a search query for the given user."""

        normalized = (query or "").strip().lower()
        if not normalized:
            return

        async with self.pool.connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO user_search_history (
                        user_id, query, results_count, run_count, last_searched_at
                    ) VALUES (?, ?, ?, 1, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                    ON CONFLICT(user_id, query) DO UPDATE SET
                        results_count = excluded.results_count,
                        run_count = run_count + 1,
                        last_searched_at = excluded.last_searched_at
                    """,
                    (user_id, normalized, int(results_count)),
                )
                await conn.execute(
                    """
                    DELETE FROM user_search_history
                    WHERE user_id = ?
                      AND query NOT IN (
                        SELECT query FROM user_search_history
                        WHERE user_id = ?
                        ORDER BY last_searched_at DESC, rowid DESC
                        LIMIT ?
                      )
                    """,
                    (user_id, user_id, self._max_entries),
                )

            await self._run_in_transaction(conn, _tx)

    async def get_recent_searches(self, user_id: str, limit: int = 8) -> list[dict]:
        """Return the most recent search queries for the user."""

        if limit <= 0:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                """
                SELECT query, results_count, run_count, last_searched_at
                FROM user_search_history
                WHERE user_id = ?
                ORDER BY last_searched_at DESC, rowid DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def clear(self, user_id: str) -> int:
        async with self.pool.connection() as conn:

            async def _tx() -> int:
                cursor = await conn.execute(
                    "DELETE FROM user_search_history WHERE user_id = ?", (user_id,)
                )
                return cursor.rowcount or 0

            return await self._run_in_transaction(conn, _tx)
