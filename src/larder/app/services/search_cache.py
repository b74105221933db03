"""TTL memoization for search facets and suggestions."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Hashable
from logging import getLogger
from typing import Any, Protocol

import orjson
from cachetools import TTLCache

from larder.util import unique_stripped

from .search_config import CACHE_TTL_SECONDS

logger = getLogger(__name__)

CacheKey = tuple[Hashable, ...]
Timer = Callable[[], float]

FILTERS_KIND = "filters"
SUGGESTIONS_KIND = "suggestions"

TITLE_SUGGESTION_LIMIT = 5
CUISINE_SUGGESTION_LIMIT = 3
TAG_SUGGESTION_LIMIT = 3
MIN_SUGGESTION_LENGTH = 2


class SearchCacheBackend(Protocol):
    def get(self, key: CacheKey, default: object | None = None) -> object | None: ...

    def __setitem__(self, key: CacheKey, value: object) -> None: ...

    def __len__(self) -> int: ...

    def clear(self) -> None: ...


def default_backend_factory(maxsize: int, ttl: int, timer: Timer) -> TTLCache:
    return TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)


class TTLSearchCache:
    """Process-wide payload cache with a fixed time-to-live.

    Entries expire ``ttl`` seconds after they were written; reading an entry
    never extends its lifetime. Payloads are stored as encoded JSON so every
    hit hands back a fresh copy of what was written.
    """

    __slots__ = ("_lock", "_backend", "_ttl")

    def __init__(
        self,
        *,
        maxsize: int = 4096,
        ttl: int = CACHE_TTL_SECONDS,
        timer: Timer = time.monotonic,
        backend_factory: Callable[[int, int, Timer], SearchCacheBackend] | None = None,
    ) -> None:
        factory = backend_factory or default_backend_factory
        self._backend: SearchCacheBackend = factory(max(1, maxsize), ttl, timer)
        self._ttl = ttl
        self._lock = threading.Lock()

    @property
    def ttl(self) -> int:
        return self._ttl

    def get(self, key: CacheKey) -> tuple[Any, bool]:
        with self._lock:
            encoded = self._backend.get(key)
        if encoded is None:
            return None, False
        return orjson.loads(encoded), True

    def set(self, key: CacheKey, value: Any) -> None:
        encoded = orjson.dumps(value)
        with self._lock:
            self._backend[key] = encoded

    def clear(self) -> int:
        with self._lock:
            size = len(self._backend)
            self._backend.clear()
        logger.info("Cleared %d search cache entries", size)
        return size

    def stats(self) -> dict[str, int]:
        with self._lock:
            expire = getattr(self._backend, "expire", None)
            if callable(expire):
                expire()
            size = len(self._backend)
        return {"size": size, "ttl": self._ttl}


class FacetQueries(Protocol):
    async def distinct_cuisines(self, user_id: str) -> list[str]: ...

    async def distinct_difficulties(self, user_id: str) -> list[str]: ...

    async def tag_facets(self, user_id: str) -> list[dict[str, Any]]: ...

    async def suggest_titles(self, user_id: str, partial: str, limit: int) -> list[str]: ...

    async def suggest_cuisines(self, user_id: str, partial: str, limit: int) -> list[str]: ...

    async def suggest_tags(self, partial: str, limit: int) -> list[str]: ...


def empty_filters() -> dict[str, list]:
    return {"cuisines": [], "difficulties": [], "tags": []}


class FilterSuggestionCache:
    """Serve filter facets and type-ahead suggestions through the TTL cache.

    Failures while computing either payload are logged and answered with an
    empty result that is not stored, so the next request tries again.
    """

    __slots__ = ("_queries", "_cache")

    def __init__(self, queries: FacetQueries, cache: TTLSearchCache) -> None:
        self._queries = queries
        self._cache = cache

    @property
    def cache(self) -> TTLSearchCache:
        return self._cache

    async def get_filters(self, user_id: str) -> dict[str, list]:
        key = (FILTERS_KIND, user_id)
        cached, found = self._cache.get(key)
        if found:
            return cached

        try:
            cuisines, difficulties, tags = await asyncio.gather(
                self._queries.distinct_cuisines(user_id),
                self._queries.distinct_difficulties(user_id),
                self._queries.tag_facets(user_id),
            )
        except Exception:
            logger.exception("Failed to compute search filters for user %s", user_id)
            return empty_filters()

        filters = {
            "cuisines": list(cuisines),
            "difficulties": list(difficulties),
            "tags": list(tags),
        }
        self._cache.set(key, filters)
        return filters

    async def get_suggestions(
        self, user_id: str, partial: str, limit: int = 10
    ) -> list[str]:
        text = (partial or "").strip()
        if len(text) < MIN_SUGGESTION_LENGTH or limit <= 0:
            return []

        key = (SUGGESTIONS_KIND, user_id, text.lower())
        cached, found = self._cache.get(key)
        if found:
            return cached[:limit]

        try:
            titles, cuisines, tags = await asyncio.gather(
                self._queries.suggest_titles(user_id, text, TITLE_SUGGESTION_LIMIT),
                self._queries.suggest_cuisines(user_id, text, CUISINE_SUGGESTION_LIMIT),
                self._queries.suggest_tags(text, TAG_SUGGESTION_LIMIT),
            )
        except Exception:
            logger.exception(
                "Failed to compute search suggestions for user %s (partial=%r)",
                user_id,
                text,
            )
            return []

        suggestions = unique_stripped([*titles, *cuisines, *tags], key=str.lower)
        self._cache.set(key, suggestions)
        return suggestions[:limit]

    def clear(self) -> int:
        return self._cache.clear()

    def stats(self) -> dict[str, int]:
        return self._cache.stats()


__all__ = [
    "FilterSuggestionCache",
    "TTLSearchCache",
    "default_backend_factory",
    "empty_filters",
]
