from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from aiosqlitepool import SQLiteConnectionPool
from ulid import ULID

from .base import BaseRepository, row_to_dict
from .events import (
    RECIPE_CREATED_EVENT,
    RECIPE_DELETED_EVENT,
    RECIPE_UPDATED_EVENT,
    RepositoryEventBus,
)

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")

RECIPE_BOOL_COLUMNS = ("is_public", "is_archived")

# Columns a caller may set through create_recipe/update_recipe.
_EDITABLE_COLUMNS = (
    "title",
    "description",
    "servings",
    "prep_time_minutes",
    "cook_time_minutes",
    "difficulty",
    "cuisine",
    "source_url",
    "source_name",
    "is_public",
    "is_archived",
)

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


def slugify(title: str) -> str:
    base = _SLUG_PATTERN.sub("-", (title or "").lower()).strip("-")
    suffix = str(ULID())[-8:].lower()
    return f"{base or 'recipe'}-{suffix}"


def _coerce_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(_EDITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown recipe fields: {', '.join(sorted(unknown))}")
    values = dict(fields)
    difficulty = values.get("difficulty")
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty!r}")
    for column in RECIPE_BOOL_COLUMNS:
        if column in values:
            values[column] = 1 if values[column] else 0
    return values


class RecipesRepository(BaseRepository):
    """Transactional writes for recipes and their child records.

    Every write emits a repository event after commit so derived state (the
    full-text index) can be refreshed by its maintainer.
    """

    def __init__(
        self,
        pool: SQLiteConnectionPool,
        event_bus: RepositoryEventBus | None = None,
    ) -> None:
        super().__init__(pool)
        self._event_bus = event_bus

    async def _emit(self, event: str, recipe_id: str) -> None:
        if self._event_bus:
            await self._event_bus.emit(event, recipe_id=recipe_id)

    async def create_recipe(
        self,
        user_id: str,
        *,
        title: str,
        ingredients: Sequence[Mapping[str, Any]] = (),
        instructions: Sequence[Mapping[str, Any] | str] = (),
        tags: Sequence[str] = (),
        images: Sequence[Mapping[str, Any]] = (),
        **fields: Any,
    ) -> str:
        """Insert a recipe with its children and return the new identifier."""

        values = _coerce_fields({"title": title, **fields})
        recipe_id = str(ULID())
        columns = ["id", "slug", "user_id", *values.keys()]
        params = [recipe_id, slugify(title), user_id, *values.values()]

        async with self.pool.connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    f"INSERT INTO recipes ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' * len(columns))})",
                    params,
                )
                await self._insert_ingredients(conn, recipe_id, ingredients)
                await self._insert_instructions(conn, recipe_id, instructions)
                await self._link_tags(conn, recipe_id, tags)
                await self._insert_images(conn, recipe_id, images)

            await self._run_in_transaction(conn, _tx)

        logger.debug("Created recipe %s for user %s", recipe_id, user_id)
        await self._emit(RECIPE_CREATED_EVENT, recipe_id)
        return recipe_id

    async def update_recipe(
        self,
        recipe_id: str,
        *,
        ingredients: Sequence[Mapping[str, Any]] | None = None,
        instructions: Sequence[Mapping[str, Any] | str] | None = None,
        tags: Sequence[str] | None = None,
        images: Sequence[Mapping[str, Any]] | None = None,
        **fields: Any,
    ) -> bool:
        """Update columns and replace any child collections that are given."""

        values = _coerce_fields(fields)
        assignments = [f"{column} = ?" for column in values]
        assignments.append(f"updated_at = {_NOW_SQL}")

        async with self.pool.connection() as conn:

            async def _tx() -> bool:
                cursor = await conn.execute(
                    f"UPDATE recipes SET {', '.join(assignments)} WHERE id = ?",
                    (*values.values(), recipe_id),
                )
                if not cursor.rowcount:
                    return False
                if ingredients is not None:
                    await conn.execute(
                        "DELETE FROM recipe_ingredients WHERE recipe_id = ?",
                        (recipe_id,),
                    )
                    await self._insert_ingredients(conn, recipe_id, ingredients)
                if instructions is not None:
                    await conn.execute(
                        "DELETE FROM recipe_instructions WHERE recipe_id = ?",
                        (recipe_id,),
                    )
                    await self._insert_instructions(conn, recipe_id, instructions)
                if tags is not None:
                    await conn.execute(
                        "DELETE FROM recipe_tag_relations WHERE recipe_id = ?",
                        (recipe_id,),
                    )
                    await self._link_tags(conn, recipe_id, tags)
                if images is not None:
                    await conn.execute(
                        "DELETE FROM recipe_images WHERE recipe_id = ?",
                        (recipe_id,),
                    )
                    await self._insert_images(conn, recipe_id, images)
                return True

            updated = await self._run_in_transaction(conn, _tx)

        if updated:
            await self._emit(RECIPE_UPDATED_EVENT, recipe_id)
        return updated

    async def set_archived(self, recipe_id: str, archived: bool = True) -> bool:
        return await self.update_recipe(recipe_id, is_archived=archived)

    async def replace_tags(self, recipe_id: str, tags: Sequence[str]) -> bool:
        return await self.update_recipe(recipe_id, tags=tags)

    async def add_note(
        self,
        recipe_id: str,
        user_id: str,
        content: str,
        *,
        rating: int | None = None,
        is_private: bool = True,
    ) -> str:
        note_id = str(ULID())
        async with self.pool.connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO recipe_notes (id, recipe_id, user_id, content, rating, is_private)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (note_id, recipe_id, user_id, content, rating, 1 if is_private else 0),
                )
                await conn.execute(
                    f"UPDATE recipes SET updated_at = {_NOW_SQL} WHERE id = ?",
                    (recipe_id,),
                )

            await self._run_in_transaction(conn, _tx)

        await self._emit(RECIPE_UPDATED_EVENT, recipe_id)
        return note_id

    async def delete_recipe(self, recipe_id: str) -> bool:
        async with self.pool.connection() as conn:

            async def _tx() -> int:
                cursor = await conn.execute(
                    "DELETE FROM recipes WHERE id = ?", (recipe_id,)
                )
                return cursor.rowcount or 0

            deleted = await self._run_in_transaction(conn, _tx)

        if deleted:
            await self._emit(RECIPE_DELETED_EVENT, recipe_id)
        return bool(deleted)

    async def get_recipe(self, recipe_id: str) -> dict[str, Any] | None:
        async with self.pool.connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM recipes WHERE id = ?", (recipe_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return row_to_dict(row, bool_columns=RECIPE_BOOL_COLUMNS)

    async def _insert_ingredients(
        self, conn, recipe_id: str, ingredients: Sequence[Mapping[str, Any]]
    ) -> None:
        for index, ingredient in enumerate(ingredients):
            await conn.execute(
                """
                INSERT INTO recipe_ingredients (
                    id, recipe_id, name, amount, unit, notes, group_name, sort_order, is_optional
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(ULID()),
                    recipe_id,
                    ingredient["name"],
                    ingredient.get("amount"),
                    ingredient.get("unit"),
                    ingredient.get("notes"),
                    ingredient.get("group_name"),
                    ingredient.get("sort_order", index),
                    1 if ingredient.get("is_optional") else 0,
                ),
            )

    async def _insert_instructions(
        self,
        conn,
        recipe_id: str,
        instructions: Sequence[Mapping[str, Any] | str],
    ) -> None:
        for index, step in enumerate(instructions, start=1):
            if isinstance(step, str):
                step = {"instruction": step}
            await conn.execute(
                """
                INSERT INTO recipe_instructions (
                    id, recipe_id, step_number, instruction, time_minutes, temperature, notes, group_name
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(ULID()),
                    recipe_id,
                    step.get("step_number", index),
                    step["instruction"],
                    step.get("time_minutes"),
                    step.get("temperature"),
                    step.get("notes"),
                    step.get("group_name"),
                ),
            )

    async def _insert_images(
        self, conn, recipe_id: str, images: Sequence[Mapping[str, Any]]
    ) -> None:
        for index, image in enumerate(images):
            await conn.execute(
                """
                INSERT INTO recipe_images (
                    id, recipe_id, filename, original_name, mime_type, file_size,
                    width, height, alt_text, is_hero, sort_order
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(ULID()),
                    recipe_id,
                    image["filename"],
                    image.get("original_name"),
                    image.get("mime_type", "image/jpeg"),
                    int(image.get("file_size", 0)),
                    image.get("width"),
                    image.get("height"),
                    image.get("alt_text"),
                    1 if image.get("is_hero") else 0,
                    image.get("sort_order", index),
                ),
            )

    async def _link_tags(self, conn, recipe_id: str, tags: Sequence[str]) -> None:
        seen: set[str] = set()
        for raw in tags:
            name = (raw or "").strip()
            if not name or name in seen:
                continue
            seen.add(name)
            await conn.execute(
                """
                INSERT INTO recipe_tags (id, name) VALUES (?, ?)
                ON CONFLICT(name) DO NOTHING
                """,
                (str(ULID()), name),
            )
            await conn.execute(
                """
                INSERT OR IGNORE INTO recipe_tag_relations (recipe_id, tag_id)
                SELECT ?, id FROM recipe_tags WHERE name = ?
                """,
                (recipe_id, name),
            )
