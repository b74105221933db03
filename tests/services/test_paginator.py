from __future__ import annotations

import asyncio
from typing import Any

import pytest

from larder.app.services.search_pipeline import (
    DefaultResultPaginator,
    QueryPlan,
    SearchParams,
)
from larder.app.services.search_pipeline.paginator import resolve_ordering
from larder.app.services.search_pipeline.predicates import (
    DEFAULT_ORDER,
    Column,
    ColumnOrder,
    Eq,
    In,
    RankOrder,
    Unordered,
)


class StubPageQueries:
    def __init__(self, total: int, rows: list[dict[str, Any]] | None = None) -> None:
        self.total = total
        self.rows = rows or []
        self.count_calls = 0
        self.page_calls: list[tuple[Any, int, int]] = []

    async def count_recipes(self, predicate) -> int:
        self.count_calls += 1
        return self.total

    async def fetch_recipe_page(self, predicate, ordering, limit, offset):
        self.page_calls.append((ordering, limit, offset))
        return list(self.rows)


PLAN = QueryPlan(predicate=Eq(Column.IS_ARCHIVED, False), relevance=Unordered())


@pytest.mark.parametrize(
    "limit, offset, total, expected",
    [
        (5, 10, 12, False),
        (5, 5, 12, True),
        (20, 0, 20, False),
        (20, 0, 21, True),
        (10, 30, 12, False),
        (1, 0, 0, False),
    ],
)
def test_has_more_reflects_remaining_rows(
    limit: int, offset: int, total: int, expected: bool
) -> None:
    queries = StubPageQueries(total)
    page = asyncio.run(
        DefaultResultPaginator(queries).paginate(
            PLAN, SearchParams(limit=limit, offset=offset)
        )
    )

    assert page.total == total
    assert page.has_more is expected
    assert queries.page_calls[0][1:] == (limit, offset)


def test_empty_plan_runs_no_queries() -> None:
    queries = StubPageQueries(total=99)
    plan = QueryPlan(predicate=In(Column.ID, ()), relevance=Unordered(), empty=True)
    page = asyncio.run(DefaultResultPaginator(queries).paginate(plan, SearchParams()))

    assert (page.rows, page.total, page.has_more) == ([], 0, False)
    assert queries.count_calls == 0
    assert queries.page_calls == []


@pytest.mark.parametrize(
    "sort_by, column",
    [
        ("title", Column.TITLE),
        ("createdAt", Column.CREATED_AT),
        ("updated_at", Column.UPDATED_AT),
        ("prepTimeMinutes", Column.PREP_TIME),
        ("cookTimeMinutes", Column.COOK_TIME),
        ("difficulty", Column.DIFFICULTY),
    ],
)
def test_known_sort_keys_map_to_columns(sort_by: str, column: Column) -> None:
    assert resolve_ordering(sort_by, "asc", Unordered()) == ColumnOrder(column, False)
    assert resolve_ordering(sort_by, "desc", Unordered()) == ColumnOrder(column, True)


def test_unknown_sort_key_and_direction_fall_back_silently() -> None:
    assert resolve_ordering("averageRating", "asc", Unordered()) == DEFAULT_ORDER
    assert resolve_ordering("title", "sideways", Unordered()) == ColumnOrder(
        Column.TITLE, True
    )


def test_relevance_uses_plan_ordering() -> None:
    rank = RankOrder(("b", "a"))
    assert resolve_ordering("relevance", "asc", rank) is rank
    assert resolve_ordering("relevance", "desc", Unordered()) == Unordered()


class RendezvousPageQueries:
    def __init__(self, rendezvous) -> None:
        self.rendezvous = rendezvous

    async def count_recipes(self, predicate) -> int:
        await self.rendezvous.wait()
        return 3

    async def fetch_recipe_page(self, predicate, ordering, limit, offset):
        await self.rendezvous.wait()
        return [{"id": "r1"}]


def test_count_and_page_queries_run_concurrently(rendezvous) -> None:
    paginator = DefaultResultPaginator(RendezvousPageQueries(rendezvous(2)))

    page = asyncio.run(
        asyncio.wait_for(paginator.paginate(PLAN, SearchParams(limit=1)), timeout=2)
    )

    assert page.total == 3
    assert page.has_more is True
