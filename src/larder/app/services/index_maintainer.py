from __future__ import annotations

import logging
import time
from typing import Protocol

from larder.app.db.events import (
    RECIPE_CREATED_EVENT,
    RECIPE_DELETED_EVENT,
    RECIPE_UPDATED_EVENT,
    RepositoryEventBus,
)

logger = logging.getLogger(__name__)


class SearchIndexStore(Protocol):
    async def insert_entry(self, recipe_id: str) -> bool: ...

    async def replace_entry(self, recipe_id: str) -> bool: ...

    async def delete_entry(self, recipe_id: str) -> int: ...

    async def rebuild(self) -> int: ...

    async def clear(self) -> int: ...


class IndexMaintainer:
    """Keep the full-text index in step with recipe writes.

    Subscribed to the repository event bus, so every recipe create, update
    or delete refreshes the matching index entry after the write commits.
    """

    __slots__ = ("_index", "_events")

    def __init__(
        self,
        search_index: SearchIndexStore,
        *,
        event_bus: RepositoryEventBus | None = None,
    ) -> None:
        self._index = search_index
        self._events = event_bus
        if not self._events:
            return
        self._events.subscribe(RECIPE_CREATED_EVENT, self.on_recipe_created)
        self._events.subscribe(RECIPE_UPDATED_EVENT, self.on_recipe_updated)
        self._events.subscribe(RECIPE_DELETED_EVENT, self.on_recipe_deleted)

    def detach(self) -> None:
        if not self._events:
            return
        self._events.unsubscribe(RECIPE_CREATED_EVENT, self.on_recipe_created)
        self._events.unsubscribe(RECIPE_UPDATED_EVENT, self.on_recipe_updated)
        self._events.unsubscribe(RECIPE_DELETED_EVENT, self.on_recipe_deleted)
        self._events = None

    async def on_recipe_created(self, *, recipe_id: str) -> None:
        indexed = await self._index.insert_entry(recipe_id)
        logger.debug("Indexed new recipe %s (written=%s)", recipe_id, indexed)

    async def on_recipe_updated(self, *, recipe_id: str) -> None:
        indexed = await self._index.replace_entry(recipe_id)
        logger.debug("Reindexed recipe %s (written=%s)", recipe_id, indexed)

    async def on_recipe_deleted(self, *, recipe_id: str) -> None:
        removed = await self._index.delete_entry(recipe_id)
        logger.debug("Removed %d index entries for recipe %s", removed, recipe_id)

    async def rebuild_index(self) -> int:
        """Repopulate the index from every non-archived recipe."""

        start = time.perf_counter()
        count = await self._index.rebuild()
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("Rebuilt search index with %d recipes in %.1fms", count, elapsed_ms)
        return count

    async def drop_index(self) -> int:
        removed = await self._index.clear()
        logger.info("Dropped %d search index entries", removed)
        return removed


__all__ = ["IndexMaintainer", "SearchIndexStore"]
