from __future__ import annotations

import asyncio
import logging
import sqlite3
from types import SimpleNamespace

import pytest

from larder.app.api.search import SearchAPI
from larder.app.services.search_pipeline import (
    QueryPlan,
    SearchParams,
    SearchPipelineComponents,
)
from larder.app.services.search_pipeline.predicates import Column, Eq, Unordered

OWNER = "user-alice"
OTHER = "user-bob"


def test_chocolate_desserts(run_with_api) -> None:
    async def scenario(api, ids):
        return await api.search(
            OWNER, SearchParams(query="chocolate", tags=("dessert",))
        )

    result = run_with_api(scenario)

    assert result.total == 2
    assert {recipe["title"] for recipe in result.recipes} == {
        "Chocolate Cake",
        "Brownies",
    }
    assert result.has_more is False
    for recipe in result.recipes:
        assert "dessert" in {tag["name"] for tag in recipe["tags"]}
    assert result.search_time_ms >= 0


def test_every_requested_tag_must_match(run_with_api) -> None:
    async def scenario(api, ids):
        both = await api.search(OWNER, SearchParams(tags=("dessert", "baking")))
        unknown = await api.search(OWNER, SearchParams(tags=("dessert", "vegan")))
        return both, unknown

    both, unknown = run_with_api(scenario)

    assert [recipe["title"] for recipe in both.recipes] == ["Chocolate Cake"]
    assert both.total == 1
    assert unknown.total == 0
    assert unknown.recipes == []
    assert unknown.has_more is False


def test_recipes_are_hydrated_in_display_order(run_with_api) -> None:
    async def scenario(api, ids):
        params = SearchParams(query="cake", sort_by="title", sort_order="asc")
        return await api.search(OWNER, params), await api.search(OWNER, params)

    first, second = run_with_api(scenario)

    cake = first.recipes[0]
    assert cake["title"] == "Chocolate Cake"
    assert [item["name"] for item in cake["ingredients"]] == [
        "dark chocolate",
        "flour",
        "eggs",
    ]
    assert [step["step_number"] for step in cake["instructions"]] == [1, 2, 3]
    assert [tag["name"] for tag in cake["tags"]] == ["baking", "dessert"]
    assert cake["images"][0]["filename"] == "cake.jpg"
    assert cake["images"][0]["is_hero"] is True
    assert cake["total_time_minutes"] == 75
    assert first.recipes == second.recipes


def test_fallback_matches_when_index_is_empty(run_with_api) -> None:
    async def scenario(api, ids):
        await api.drop_index()
        return await api.search(OWNER, SearchParams(query="noodles"))

    result = run_with_api(scenario)

    assert [recipe["title"] for recipe in result.recipes] == ["Chicken Soup"]


def test_visibility_and_archiving(run_with_api) -> None:
    async def scenario(api, ids):
        before = await api.search(OTHER, SearchParams())
        await api.db.recipes.update_recipe(ids["Brownies"], is_public=True)
        await api.db.recipes.set_archived(ids["Chicken Soup"])
        public = await api.search(OTHER, SearchParams())
        owned = await api.search(OWNER, SearchParams(query="soup"))
        return before, public, owned

    before, public, owned = run_with_api(scenario)

    assert before.total == 0
    assert [recipe["title"] for recipe in public.recipes] == ["Brownies"]
    assert owned.total == 0


def test_filters_and_pagination(run_with_api) -> None:
    async def scenario(api, ids):
        easy = await api.search(
            OWNER, SearchParams(difficulty=("easy",), max_prep_time=10)
        )
        paged = await api.search(
            OWNER, SearchParams(sort_by="title", sort_order="asc", limit=2, offset=0)
        )
        rest = await api.search(
            OWNER, SearchParams(sort_by="title", sort_order="asc", limit=2, offset=2)
        )
        return easy, paged, rest

    easy, paged, rest = run_with_api(scenario)

    assert [recipe["title"] for recipe in easy.recipes] == ["Chicken Soup"]
    assert [recipe["title"] for recipe in paged.recipes] == [
        "Brownies",
        "Chicken Soup",
    ]
    assert paged.total == 3
    assert paged.has_more is True
    assert [recipe["title"] for recipe in rest.recipes] == ["Chocolate Cake"]
    assert rest.has_more is False


def test_relevance_sort_keeps_index_rank(run_with_api) -> None:
    async def scenario(api, ids):
        return await api.search(
            OWNER, SearchParams(query="chocolate", sort_by="relevance")
        )

    result = run_with_api(scenario)

    assert result.total == 2
    assert result.recipes[0]["title"] == "Chocolate Cake"


def test_facets_are_attached_to_results(run_with_api) -> None:
    async def scenario(api, ids):
        return await api.search(OWNER, SearchParams())

    filters = run_with_api(scenario).filters

    assert filters["cuisines"] == ["American", "Chinese", "Italian"]
    assert filters["difficulties"] == ["easy", "medium"]
    assert [(tag["name"], tag["recipe_count"]) for tag in filters["tags"]] == [
        ("dessert", 2),
        ("baking", 1),
        ("soup", 1),
    ]


def test_suggestions_scenario(run_with_api) -> None:
    async def scenario(api, ids):
        return await api.suggestions(OWNER, "ch", 5)

    assert run_with_api(scenario) == ["Chicken Soup", "Chocolate Cake", "Chinese"]


def test_cached_facets_survive_until_cleared(run_with_api) -> None:
    async def scenario(api, ids):
        await api.search(OWNER, SearchParams())
        await api.db.recipes.create_recipe(OWNER, title="Pad Thai", cuisine="Thai")
        cached = await api.search(OWNER, SearchParams())
        stats = api.cache_stats()
        api.clear_cache()
        fresh = await api.search(OWNER, SearchParams())
        return cached, stats, fresh

    cached, stats, fresh = run_with_api(scenario)

    assert "Thai" not in cached.filters["cuisines"]
    assert cached.total == 4
    assert stats == {"size": 1, "ttl": 300}
    assert "Thai" in fresh.filters["cuisines"]


def test_search_history_is_recorded(run_with_api) -> None:
    async def scenario(api, ids):
        await api.search(OWNER, SearchParams(query="Chocolate"))
        await api.search(OWNER, SearchParams(query=" chocolate "))
        await api.search(OWNER, SearchParams(query="soup"))
        await api.search(OWNER, SearchParams())
        recent = await api.recent_searches(OWNER)
        removed = await api.clear_history(OWNER)
        after = await api.recent_searches(OWNER)
        return recent, removed, after

    recent, removed, after = run_with_api(scenario)

    by_query = {entry["query"]: entry for entry in recent}
    assert set(by_query) == {"chocolate", "soup"}
    assert by_query["chocolate"]["run_count"] == 2
    assert by_query["chocolate"]["results_count"] == 2
    assert removed == 2
    assert after == []


class StaticPlanner:
    async def plan(self, user_id, params):
        return QueryPlan(predicate=Eq(Column.IS_ARCHIVED, False), relevance=Unordered())


class BrokenPaginator:
    async def paginate(self, plan, params):
        raise sqlite3.OperationalError("disk I/O error")


class PassthroughHydrator:
    async def hydrate(self, rows):
        return list(rows)


class EmptyFacetQueries:
    async def distinct_cuisines(self, user_id):
        return []

    async def distinct_difficulties(self, user_id):
        return []

    async def tag_facets(self, user_id):
        return []


def test_store_errors_are_logged_with_context_and_reraised(caplog) -> None:
    components = SearchPipelineComponents(
        planner=StaticPlanner(),
        paginator=BrokenPaginator(),
        hydrator=PassthroughHydrator(),
    )
    db = SimpleNamespace(recipe_queries=EmptyFacetQueries())
    api = SearchAPI(db, components=components)
    params = SearchParams(query="stew", limit=5, offset=10)

    caplog.set_level(logging.ERROR, logger="larder.app.api.search")
    with pytest.raises(sqlite3.OperationalError, match="disk I/O error"):
        asyncio.run(api.search(OWNER, params))

    records = [r for r in caplog.records if r.name == "larder.app.api.search"]
    assert len(records) == 1
    message = records[0].getMessage()
    assert OWNER in message
    assert "'stew'" in message
    assert "'limit': 5" in message
    assert "'offset': 10" in message
    assert records[0].exc_info is not None
