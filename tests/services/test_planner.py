from __future__ import annotations

import asyncio
from collections.abc import Sequence

from larder.app.services.search_config import SearchConfig
from larder.app.services.search_pipeline import (
    DefaultQueryPlanner,
    DefaultTagResolver,
    IndexFailure,
    IndexHits,
    SearchParams,
    resolve_text_predicate,
)
from larder.app.services.search_pipeline.planner import build_fts_query
from larder.app.services.search_pipeline.predicates import (
    Column,
    Contains,
    In,
    RankOrder,
    Unordered,
)


class StubIndex:
    def __init__(self, hits: Sequence[str] = (), error: Exception | None = None) -> None:
        self.hits = list(hits)
        self.error = error
        self.calls: list[tuple[str, int]] = []

    async def match(self, fts_query: str, limit: int) -> list[str]:
        self.calls.append((fts_query, limit))
        if self.error is not None:
            raise self.error
        return list(self.hits)


class StubTagQueries:
    def __init__(self, result: Sequence[str]) -> None:
        self.result = list(result)
        self.calls: list[list[str]] = []

    async def find_recipes_with_all_tags(self, tag_names: Sequence[str]) -> list[str]:
        self.calls.append(list(tag_names))
        return list(self.result)


def _planner(index: StubIndex, tags: StubTagQueries | None = None) -> DefaultQueryPlanner:
    resolver = DefaultTagResolver(tags or StubTagQueries([]))
    return DefaultQueryPlanner(index, resolver, SearchConfig())


def test_fts_query_quotes_tokens_as_prefix_terms() -> None:
    assert build_fts_query("choc  cake") == '"choc"* OR "cake"*'
    assert build_fts_query('say "hi"') == '"say"* OR """hi"""*'


def test_index_hits_become_membership_with_rank_order() -> None:
    match = resolve_text_predicate("cake", IndexHits(("r2", "r1")))
    assert match.used_index
    assert match.predicate == In(Column.ID, ("r2", "r1"))
    assert match.relevance == RankOrder(("r2", "r1"))


def test_zero_hits_and_failures_fall_back_to_substring_match() -> None:
    expected = Contains((Column.TITLE, Column.DESCRIPTION, Column.CUISINE), "cake")
    for lookup in (IndexHits(()), IndexFailure(RuntimeError("boom"))):
        match = resolve_text_predicate("cake", lookup)
        assert not match.used_index
        assert match.predicate == expected
        assert match.relevance == Unordered()


def test_index_error_is_not_surfaced() -> None:
    index = StubIndex(error=RuntimeError("fts5: syntax error"))
    plan = asyncio.run(_planner(index).plan("u1", SearchParams(query="cake")))

    sql, params = plan.predicate.to_sql()
    assert "LIKE" in sql
    assert "%cake%" in params
    assert index.calls == [('"cake"*', 500)]


def test_empty_tag_resolution_short_circuits_before_index_lookup() -> None:
    index = StubIndex(hits=["r1"])
    tags = StubTagQueries([])
    plan = asyncio.run(
        _planner(index, tags).plan("u1", SearchParams(query="cake", tags=("missing",)))
    )

    assert plan.empty
    assert plan.predicate.to_sql() == ("0", [])
    assert index.calls == []
    assert tags.calls == [["missing"]]


def test_blank_tags_mean_no_tag_filter() -> None:
    tags = StubTagQueries(["r1"])
    plan = asyncio.run(
        _planner(StubIndex(), tags).plan("u1", SearchParams(tags=(" ", "")))
    )

    assert not plan.empty
    assert tags.calls == []


def test_default_visibility_is_owner_or_public() -> None:
    plan = asyncio.run(_planner(StubIndex()).plan("u1", SearchParams()))
    sql, params = plan.predicate.to_sql()

    assert sql == "(r.is_archived = ?) AND ((r.user_id = ?) OR (r.is_public = ?))"
    assert params == [0, "u1", 1]


def test_attribute_filters_are_anded() -> None:
    params = SearchParams(
        cuisine=("Italian",),
        difficulty=("easy", "medium"),
        max_prep_time=20,
        max_cook_time=40,
        servings=4,
        is_public=True,
    )
    plan = asyncio.run(_planner(StubIndex()).plan("u1", params))
    sql, values = plan.predicate.to_sql()

    assert "(r.is_public = ?)" in sql
    assert "r.user_id" not in sql
    assert "r.cuisine IN (?)" in sql
    assert "r.difficulty IN (?,?)" in sql
    assert "COALESCE(r.prep_time_minutes, 0) <= ?" in sql
    assert "COALESCE(r.cook_time_minutes, 0) <= ?" in sql
    assert "(r.servings = ?)" in sql
    assert values == [0, 1, "Italian", "easy", "medium", 20, 40, 4]
