"""Resolve AND-of-tags constraints into candidate recipe identifiers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from larder.util import unique_stripped

logger = logging.getLogger(__name__)


class TagQueries(Protocol):
    async def find_recipes_with_all_tags(self, tag_names: Sequence[str]) -> list[str]: ...


class BaseTagResolver(Protocol):
    """Interface for tag intersection lookups."""

    async def resolve(self, tags: Sequence[str]) -> list[str] | None:
        """Return IDs of recipes carrying every tag, or ``None`` for no filter."""

        ...


class DefaultTagResolver:
    """Intersect tag memberships with a single grouped query."""

    def __init__(self, queries: TagQueries) -> None:
        self._queries = queries

    async def resolve(self, tags: Sequence[str]) -> list[str] | None:
        names = unique_stripped(tags)
        if not names:
            return None
        recipe_ids = await self._queries.find_recipes_with_all_tags(names)
        logger.debug(
            "Resolved %d recipes carrying all of %d tags", len(recipe_ids), len(names)
        )
        return recipe_ids


__all__ = ["BaseTagResolver", "DefaultTagResolver", "TagQueries"]
