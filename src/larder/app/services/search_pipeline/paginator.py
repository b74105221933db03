"""Concurrent count and page retrieval for a query plan."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from .params import SearchParams
from .planner import QueryPlan
from .predicates import (
    DEFAULT_ORDER,
    Column,
    ColumnOrder,
    Ordering,
    Predicate,
)

logger = logging.getLogger(__name__)

RELEVANCE = "relevance"

SORT_COLUMNS: dict[str, Column] = {
    "title": Column.TITLE,
    "createdAt": Column.CREATED_AT,
    "created_at": Column.CREATED_AT,
    "updatedAt": Column.UPDATED_AT,
    "updated_at": Column.UPDATED_AT,
    "prepTimeMinutes": Column.PREP_TIME,
    "prep_time_minutes": Column.PREP_TIME,
    "cookTimeMinutes": Column.COOK_TIME,
    "cook_time_minutes": Column.COOK_TIME,
    "difficulty": Column.DIFFICULTY,
}


class PageQueries(Protocol):
    async def count_recipes(self, predicate: Predicate) -> int: ...

    async def fetch_recipe_page(
        self, predicate: Predicate, ordering: Ordering, limit: int, offset: int
    ) -> list[dict[str, Any]]: ...


@dataclass(slots=True)
class Page:
    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    has_more: bool = False


def resolve_ordering(sort_by: str | None, sort_order: str | None, relevance: Ordering) -> Ordering:
    """Map a sort key and direction onto an ordering expression.

    Unknown keys sort by creation time, newest first.
    """

    if sort_by == RELEVANCE:
        return relevance
    column = SORT_COLUMNS.get(sort_by or "")
    if column is None:
        return DEFAULT_ORDER
    descending = (sort_order or "").lower() != "asc"
    return ColumnOrder(column, descending=descending)


class BaseResultPaginator(Protocol):
    """Interface for producing one page of recipe rows."""

    async def paginate(self, plan: QueryPlan, params: SearchParams) -> Page: ...


class DefaultResultPaginator:
    """Run count and page queries concurrently against the recipe store."""

    def __init__(self, queries: PageQueries) -> None:
        self._queries = queries

    async def paginate(self, plan: QueryPlan, params: SearchParams) -> Page:
        if plan.empty:
            return Page()

        ordering = resolve_ordering(params.sort_by, params.sort_order, plan.relevance)
        total, rows = await asyncio.gather(
            self._queries.count_recipes(plan.predicate),
            self._queries.fetch_recipe_page(
                plan.predicate, ordering, params.limit, params.offset
            ),
        )
        logger.debug(
            "Fetched %d of %d recipes (limit=%d offset=%d)",
            len(rows),
            total,
            params.limit,
            params.offset,
        )
        return Page(
            rows=rows,
            total=total,
            has_more=params.offset + params.limit < total,
        )


__all__ = [
    "BaseResultPaginator",
    "DefaultResultPaginator",
    "Page",
    "RELEVANCE",
    "SORT_COLUMNS",
    "resolve_ordering",
]
