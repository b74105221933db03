from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .base import BaseRepository, like_pattern, placeholders, row_to_dict
from .recipes import RECIPE_BOOL_COLUMNS

if TYPE_CHECKING:
    from larder.app.services.search_pipeline.predicates import Ordering, Predicate

_RECIPE_COLUMNS = """
    r.id, r.slug, r.user_id, r.title, r.description, r.servings,
    r.prep_time_minutes, r.cook_time_minutes, r.difficulty, r.cuisine,
    r.source_url, r.source_name, r.is_public, r.is_archived,
    r.created_at, r.updated_at,
    COALESCE(r.prep_time_minutes, 0) + COALESCE(r.cook_time_minutes, 0) AS total_time_minutes
"""

_VISIBLE_TO_USER = "r.is_archived = 0 AND (r.user_id = ? OR r.is_public = 1)"


class RecipeQueriesRepository(BaseRepository):
    """Read-side queries backing recipe search, hydration, facets and suggestions."""

    async def count_recipes(self, predicate: Predicate) -> int:
        where, params = predicate.to_sql()
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"SELECT COUNT(*) AS total FROM recipes r WHERE {where}", params
            )
            row = await cursor.fetchone()
        return int(row["total"]) if row else 0

    async def fetch_recipe_page(
        self,
        predicate: Predicate,
        ordering: Ordering,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        where, params = predicate.to_sql()
        order_sql, order_params = ordering.to_sql()
        sql = f"""
            SELECT {_RECIPE_COLUMNS}
            FROM recipes r
            WHERE {where}
            {order_sql}
            LIMIT ? OFFSET ?
        """
        async with self.pool.connection() as conn:
            cursor = await conn.execute(sql, [*params, *order_params, limit, offset])
            rows = await cursor.fetchall()
        return [row_to_dict(row, bool_columns=RECIPE_BOOL_COLUMNS) for row in rows]

    async def fetch_ingredients(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not recipe_ids:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT id, recipe_id, name, amount, unit, notes, group_name, sort_order, is_optional
                FROM recipe_ingredients
                WHERE recipe_id IN ({placeholders(recipe_ids)})
                ORDER BY recipe_id ASC, sort_order ASC
                """,
                list(recipe_ids),
            )
            rows = await cursor.fetchall()
        return [row_to_dict(row, bool_columns=("is_optional",)) for row in rows]

    async def fetch_instructions(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not recipe_ids:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT id, recipe_id, step_number, instruction, time_minutes,
                       temperature, notes, group_name
                FROM recipe_instructions
                WHERE recipe_id IN ({placeholders(recipe_ids)})
                ORDER BY recipe_id ASC, step_number ASC
                """,
                list(recipe_ids),
            )
            rows = await cursor.fetchall()
        return [row_to_dict(row) for row in rows]

    async def fetch_tags(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not recipe_ids:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT rtr.recipe_id, t.id, t.name, t.color, t.category, t.created_at
                FROM recipe_tag_relations rtr
                JOIN recipe_tags t ON t.id = rtr.tag_id
                WHERE rtr.recipe_id IN ({placeholders(recipe_ids)})
                ORDER BY rtr.recipe_id ASC, t.name ASC
                """,
                list(recipe_ids),
            )
            rows = await cursor.fetchall()
        return [row_to_dict(row) for row in rows]

    async def fetch_images(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not recipe_ids:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT id, recipe_id, filename, original_name, mime_type, file_size,
                       width, height, alt_text, is_hero, sort_order, uploaded_at
                FROM recipe_images
                WHERE recipe_id IN ({placeholders(recipe_ids)})
                ORDER BY recipe_id ASC, sort_order ASC
                """,
                list(recipe_ids),
            )
            rows = await cursor.fetchall()
        return [row_to_dict(row, bool_columns=("is_hero",)) for row in rows]

    async def find_recipes_with_all_tags(self, tag_names: Sequence[str]) -> list[str]:
        """Return IDs of recipes linked to every name in ``tag_names``.

        ``tag_names`` must already be distinct: the HAVING clause compares the
        per-recipe count of matched tags against its length.
        """

        if not tag_names:
            return []
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT rtr.recipe_id
                FROM recipe_tag_relations rtr
                JOIN recipe_tags t ON t.id = rtr.tag_id
                WHERE t.name IN ({placeholders(tag_names)})
                GROUP BY rtr.recipe_id
                HAVING COUNT(DISTINCT t.id) = ?
                ORDER BY rtr.recipe_id
                """,
                (*tag_names, len(tag_names)),
            )
            rows = await cursor.fetchall()
        return [row["recipe_id"] for row in rows]

    async def distinct_cuisines(self, user_id: str) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT r.cuisine
                FROM recipes r
                WHERE {_VISIBLE_TO_USER}
                  AND r.cuisine IS NOT NULL AND r.cuisine != ''
                ORDER BY r.cuisine
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [row["cuisine"] for row in rows]

    async def distinct_difficulties(self, user_id: str) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT r.difficulty
                FROM recipes r
                WHERE {_VISIBLE_TO_USER}
                  AND r.difficulty IS NOT NULL
                ORDER BY CASE r.difficulty
                    WHEN 'easy' THEN 0 WHEN 'medium' THEN 1 WHEN 'hard' THEN 2
                END
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [row["difficulty"] for row in rows]

    async def tag_facets(self, user_id: str) -> list[dict[str, Any]]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT t.id, t.name, t.color, t.category, t.created_at,
                       COUNT(DISTINCT r.id) AS recipe_count
                FROM recipe_tags t
                JOIN recipe_tag_relations rtr ON rtr.tag_id = t.id
                JOIN recipes r ON r.id = rtr.recipe_id
                WHERE {_VISIBLE_TO_USER}
                GROUP BY t.id
                ORDER BY recipe_count DESC, t.name ASC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [row_to_dict(row) for row in rows]

    async def suggest_titles(self, user_id: str, partial: str, limit: int) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT r.title AS suggestion
                FROM recipes r
                WHERE {_VISIBLE_TO_USER}
                  AND LOWER(r.title) LIKE ? ESCAPE '\\'
                ORDER BY r.title
                LIMIT ?
                """,
                (user_id, like_pattern(partial.lower()), limit),
            )
            rows = await cursor.fetchall()
        return [row["suggestion"] for row in rows]

    async def suggest_cuisines(self, user_id: str, partial: str, limit: int) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT r.cuisine AS suggestion
                FROM recipes r
                WHERE {_VISIBLE_TO_USER}
                  AND r.cuisine IS NOT NULL AND r.cuisine != ''
                  AND LOWER(r.cuisine) LIKE ? ESCAPE '\\'
                ORDER BY r.cuisine
                LIMIT ?
                """,
                (user_id, like_pattern(partial.lower()), limit),
            )
            rows = await cursor.fetchall()
        return [row["suggestion"] for row in rows]

    async def suggest_tags(self, partial: str, limit: int) -> list[str]:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                """
                SELECT t.name AS suggestion
                FROM recipe_tags t
                WHERE LOWER(t.name) LIKE ? ESCAPE '\\'
                ORDER BY t.name
                LIMIT ?
                """,
                (like_pattern(partial.lower()), limit),
            )
            rows = await cursor.fetchall()
        return [row["suggestion"] for row in rows]
