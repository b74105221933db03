from __future__ import annotations

import pytest

from larder.app.services.search_pipeline import InvalidSearchParams, SearchParams


class MultiDict(dict):
    def getlist(self, key: str) -> list[str]:
        value = self.get(key)
        if value is None:
            return []
        return value if isinstance(value, list) else [value]


def test_defaults() -> None:
    params = SearchParams.from_mapping({})

    assert params.query is None
    assert params.tags == ()
    assert (params.limit, params.offset) == (20, 0)
    assert (params.sort_by, params.sort_order) == ("createdAt", "desc")


def test_list_parameters_accept_repeats_and_commas() -> None:
    params = SearchParams.from_mapping(
        MultiDict(
            tags=["dessert, baking", "dessert"],
            cuisine="Italian,Chinese",
            difficulty=["Easy"],
        )
    )

    assert params.tags == ("dessert", "baking")
    assert params.cuisine == ("Italian", "Chinese")
    assert params.difficulty == ("easy",)


def test_camel_case_keys_are_recognised() -> None:
    params = SearchParams.from_mapping(
        {
            "q": " soup ",
            "maxPrepTime": "15",
            "maxCookTime": "30",
            "isPublic": "true",
            "sortBy": "title",
            "sortOrder": "ASC",
        }
    )

    assert params.query == "soup"
    assert (params.max_prep_time, params.max_cook_time) == (15, 30)
    assert params.is_public is True
    assert (params.sort_by, params.sort_order) == ("title", "asc")


@pytest.mark.parametrize(
    "data",
    [
        {"limit": "0"},
        {"limit": "51"},
        {"limit": "ten"},
        {"offset": "-1"},
        {"difficulty": "impossible"},
        {"servings": "0"},
        {"is_public": "maybe"},
        {"query": "x" * 20},
    ],
)
def test_invalid_values_raise(data: dict[str, str]) -> None:
    with pytest.raises(InvalidSearchParams):
        SearchParams.from_mapping(data, max_query_length=10)


def test_invalid_params_are_value_errors() -> None:
    assert issubclass(InvalidSearchParams, ValueError)
