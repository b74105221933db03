import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from larder.app.services.index_maintainer import IndexMaintainer
from larder.app.services.search_cache import FilterSuggestionCache, TTLSearchCache
from larder.app.services.search_config import SearchConfig
from larder.app.services.search_pipeline import (
    DefaultDetailHydrator,
    DefaultQueryPlanner,
    DefaultResultPaginator,
    DefaultTagResolver,
    SearchParams,
    SearchPipeline,
    SearchPipelineComponents,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    """Hydrated page of recipes with pagination metadata and facets."""

    recipes: list[dict[str, Any]]
    total: int
    has_more: bool
    filters: dict[str, list] = field(default_factory=dict)
    search_time_ms: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "recipes": self.recipes,
            "total": self.total,
            "has_more": self.has_more,
            "filters": self.filters,
            "search_time_ms": self.search_time_ms,
        }


class SearchAPI:
    """High level recipe search interface over the local database.

    Pipeline components are built from the database repositories on first
    use, so the API can be constructed before the database is initialised.
    """

    def __init__(
        self,
        db,
        config: SearchConfig | None = None,
        *,
        cache: TTLSearchCache | None = None,
        components: SearchPipelineComponents | None = None,
    ):
        self.db = db
        self.config = config or SearchConfig()
        self.cache = cache or TTLSearchCache(
            maxsize=self.config.cache.maxsize, ttl=self.config.cache.ttl
        )
        self._components = components
        self._pipeline: SearchPipeline | None = None
        self._facets: FilterSuggestionCache | None = None
        self._index_maintainer: IndexMaintainer | None = None

    @property
    def pipeline(self) -> SearchPipeline:
        if self._pipeline is None:
            components = self._components or self._default_components()
            self._pipeline = SearchPipeline(components)
        return self._pipeline

    @property
    def facets(self) -> FilterSuggestionCache:
        if self._facets is None:
            self._facets = FilterSuggestionCache(self.db.recipe_queries, self.cache)
        return self._facets

    @property
    def index_maintainer(self) -> IndexMaintainer:
        if self._index_maintainer is None:
            self._index_maintainer = IndexMaintainer(
                self.db.search_index, event_bus=self.db.events
            )
        return self._index_maintainer

    def _default_components(self) -> SearchPipelineComponents:
        queries = self.db.recipe_queries
        tag_resolver = DefaultTagResolver(queries)
        return SearchPipelineComponents(
            planner=DefaultQueryPlanner(self.db.search_index, tag_resolver, self.config),
            paginator=DefaultResultPaginator(queries),
            hydrator=DefaultDetailHydrator(queries),
        )

    async def start(self) -> None:
        """Attach index maintenance to the database's write events."""

        maintainer = self.index_maintainer
        logger.debug("Search index maintainer attached: %r", maintainer)

    async def stop(self) -> None:
        """Detach from the database and drop repository-bound components."""

        if self._index_maintainer is not None:
            self._index_maintainer.detach()
        self._index_maintainer = None
        self._facets = None
        if self._components is None:
            self._pipeline = None

    async def search(self, user_id: str, params: SearchParams) -> SearchResult:
        """Run a filtered, paginated search and hydrate the matching recipes."""

        start = time.perf_counter()
        try:
            outcome, filters = await asyncio.gather(
                self.pipeline.execute(user_id, params),
                self.facets.get_filters(user_id),
            )
        except Exception:
            logger.exception(
                "Recipe search failed for user %s (query=%r, params=%s)",
                user_id,
                params.query,
                params.as_dict(),
            )
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Search for user %s returned %d of %d recipes in %.1fms",
            user_id,
            len(outcome.recipes),
            outcome.total,
            elapsed_ms,
        )

        if params.text:
            await self._record_history(user_id, params.text, outcome.total)

        return SearchResult(
            recipes=outcome.recipes,
            total=outcome.total,
            has_more=outcome.has_more,
            filters=filters,
            search_time_ms=round(elapsed_ms, 3),
        )

    async def _record_history(self, user_id: str, query: str, total: int) -> None:
        try:
            await self.db.search_history.record_search(user_id, query, total)
        except Exception:
            logger.warning(
                "Failed to record search history for user %s", user_id, exc_info=True
            )

    async def suggestions(
        self, user_id: str, partial_query: str, limit: int | None = None
    ) -> list[str]:
        if limit is None:
            limit = self.config.limits.suggestion_limit
        return await self.facets.get_suggestions(user_id, partial_query, limit)

    async def recent_searches(
        self, user_id: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        if limit is None:
            limit = self.config.limits.recent_suggestion_limit
        return await self.db.search_history.get_recent_searches(user_id, limit)

    async def clear_history(self, user_id: str) -> int:
        return await self.db.search_history.clear(user_id)

    def clear_cache(self) -> int:
        return self.cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    async def rebuild_index(self) -> int:
        return await self.index_maintainer.rebuild_index()

    async def drop_index(self) -> int:
        return await self.index_maintainer.drop_index()
