"""Attach child records to a page of recipe rows."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from typing import Any, Protocol


class ChildQueries(Protocol):
    async def fetch_ingredients(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]: ...

    async def fetch_instructions(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]: ...

    async def fetch_tags(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]: ...

    async def fetch_images(self, recipe_ids: Sequence[str]) -> list[dict[str, Any]]: ...


def _group(rows: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        item = dict(row)
        recipe_id = item.pop("recipe_id")
        grouped[recipe_id].append(item)
    return grouped


class BaseDetailHydrator(Protocol):
    """Interface for hydrating recipe rows with their children."""

    async def hydrate(self, rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]: ...


class DefaultDetailHydrator:
    """Issue one batched query per child type and group results by recipe."""

    def __init__(self, queries: ChildQueries) -> None:
        self._queries = queries

    async def hydrate(self, rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        if not rows:
            return []

        recipe_ids = [row["id"] for row in rows]
        ingredients, instructions, tags, images = await asyncio.gather(
            self._queries.fetch_ingredients(recipe_ids),
            self._queries.fetch_instructions(recipe_ids),
            self._queries.fetch_tags(recipe_ids),
            self._queries.fetch_images(recipe_ids),
        )
        by_ingredient = _group(ingredients)
        by_instruction = _group(instructions)
        by_tag = _group(tags)
        by_image = _group(images)

        hydrated: list[dict[str, Any]] = []
        for row in rows:
            recipe_id = row["id"]
            recipe = dict(row)
            recipe["ingredients"] = by_ingredient.get(recipe_id, [])
            recipe["instructions"] = by_instruction.get(recipe_id, [])
            recipe["tags"] = by_tag.get(recipe_id, [])
            recipe["images"] = by_image.get(recipe_id, [])
            hydrated.append(recipe)
        return hydrated


__all__ = ["BaseDetailHydrator", "ChildQueries", "DefaultDetailHydrator"]
