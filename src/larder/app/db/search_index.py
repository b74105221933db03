from __future__ import annotations

import logging

from .base import BaseRepository

logger = logging.getLogger(__name__)


# Projection of one recipe into its searchable text columns. The trailing
# WHERE clause is completed by the caller.
_ENTRY_SELECT = """
    SELECT
        r.id,
        r.title,
        COALESCE(r.description, ''),
        COALESCE(r.cuisine, ''),
        COALESCE((
            SELECT GROUP_CONCAT(ri.name || ' ' || COALESCE(ri.unit, '') || ' ' || COALESCE(ri.notes, ''), ' ')
            FROM recipe_ingredients ri WHERE ri.recipe_id = r.id
        ), ''),
        COALESCE((
            SELECT GROUP_CONCAT(inst.instruction, ' ')
            FROM recipe_instructions inst WHERE inst.recipe_id = r.id
        ), ''),
        COALESCE((
            SELECT GROUP_CONCAT(t.name, ' ')
            FROM recipe_tags t
            JOIN recipe_tag_relations rtr ON t.id = rtr.tag_id
            WHERE rtr.recipe_id = r.id
        ), ''),
        COALESCE((
            SELECT GROUP_CONCAT(rn.content, ' ')
            FROM recipe_notes rn WHERE rn.recipe_id = r.id
        ), '')
    FROM recipes r
    WHERE r.is_archived = 0
"""

_ENTRY_INSERT = f"""
    INSERT INTO recipes_fts (
        recipe_id, title, description, cuisine, ingredients, instructions, tags, notes
    )
    {_ENTRY_SELECT}
"""


class SearchIndexRepository(BaseRepository):
    """Maintain and query the derived ``recipes_fts`` full-text index.

    Index rows are a projection of recipe state; they are only ever written
    by recomputing them from the source tables.
    """

    async def match(self, fts_query: str, limit: int) -> list[str]:
        """Return recipe IDs matching ``fts_query`` ordered by FTS rank.

        Errors raised by the FTS engine (malformed expressions, a missing
        index table) propagate to the caller.
        """

        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                """
                SELECT recipe_id FROM recipes_fts
                WHERE recipes_fts MATCH ?
                ORDER BY rank
                LIMIT ?
                """,
                (fts_query, limit),
            )
            rows = await cursor.fetchall()

        seen: set[str] = set()
        recipe_ids: list[str] = []
        for row in rows:
            recipe_id = row["recipe_id"]
            if recipe_id in seen:
                continue
            seen.add(recipe_id)
            recipe_ids.append(recipe_id)
        return recipe_ids

    async def insert_entry(self, recipe_id: str) -> bool:
        """Index ``recipe_id`` unless it is archived. Return whether a row was written.

        Any existing entry is replaced, so a repeated call or one racing a
        rebuild still leaves a single row per recipe.
        """

        return await self.replace_entry(recipe_id)

    async def replace_entry(self, recipe_id: str) -> bool:
        """Drop and recompute the entry for ``recipe_id`` in one transaction."""

        async with self.pool.connection() as conn:

            async def _tx() -> int:
                await conn.execute(
                    "DELETE FROM recipes_fts WHERE recipe_id = ?", (recipe_id,)
                )
                cursor = await conn.execute(
                    _ENTRY_INSERT + " AND r.id = ?", (recipe_id,)
                )
                return cursor.rowcount or 0

            inserted = await self._run_in_transaction(conn, _tx)
        return bool(inserted)

    async def delete_entry(self, recipe_id: str) -> int:
        async with self.pool.connection() as conn:

            async def _tx() -> int:
                cursor = await conn.execute(
                    "DELETE FROM recipes_fts WHERE recipe_id = ?", (recipe_id,)
                )
                return cursor.rowcount or 0

            return await self._run_in_transaction(conn, _tx)

    async def rebuild(self) -> int:
        """Clear the index and repopulate it from every non-archived recipe."""

        async with self.pool.connection() as conn:

            async def _tx() -> int:
                await conn.execute("DELETE FROM recipes_fts")
                cursor = await conn.execute(_ENTRY_INSERT)
                return cursor.rowcount or 0

            return await self._run_in_transaction(conn, _tx)

    async def clear(self) -> int:
        async with self.pool.connection() as conn:

            async def _tx() -> int:
                cursor = await conn.execute("DELETE FROM recipes_fts")
                return cursor.rowcount or 0

            return await self._run_in_transaction(conn, _tx)

    async def entry_ids(self) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                "SELECT recipe_id FROM recipes_fts ORDER BY recipe_id"
            )
            rows = await cursor.fetchall()
        return [row["recipe_id"] for row in rows]
