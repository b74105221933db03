from __future__ import annotations

from larder.app.services.search_pipeline.predicates import (
    AtMost,
    Column,
    ColumnOrder,
    Contains,
    Eq,
    In,
    RankOrder,
    Unordered,
    all_of,
    any_of,
)


def test_equality_binds_booleans_as_integers() -> None:
    assert Eq(Column.IS_PUBLIC, True).to_sql() == ("r.is_public = ?", [1])
    assert Eq(Column.IS_ARCHIVED, False).to_sql() == ("r.is_archived = ?", [0])


def test_equality_with_none_compiles_to_is_null() -> None:
    assert Eq(Column.CUISINE, None).to_sql() == ("r.cuisine IS NULL", [])


def test_empty_membership_matches_nothing() -> None:
    assert In(Column.ID, ()).to_sql() == ("0", [])


def test_membership_uses_one_placeholder_per_value() -> None:
    sql, params = In(Column.DIFFICULTY, ("easy", "hard")).to_sql()
    assert sql == "r.difficulty IN (?,?)"
    assert params == ["easy", "hard"]


def test_upper_bound_treats_null_as_zero() -> None:
    assert AtMost(Column.PREP_TIME, 20).to_sql() == (
        "COALESCE(r.prep_time_minutes, 0) <= ?",
        [20],
    )


def test_contains_escapes_like_wildcards() -> None:
    sql, params = Contains((Column.TITLE, Column.CUISINE), "50%_off").to_sql()
    assert sql.count("LIKE ? ESCAPE") == 2
    assert params == ["%50\\%\\_off%", "%50\\%\\_off%"]


def test_conjunction_and_disjunction_nest_with_parameters_in_order() -> None:
    predicate = all_of(
        Eq(Column.IS_ARCHIVED, False),
        any_of(Eq(Column.USER_ID, "u1"), Eq(Column.IS_PUBLIC, True)),
    )
    sql, params = predicate.to_sql()
    assert sql == "(r.is_archived = ?) AND ((r.user_id = ?) OR (r.is_public = ?))"
    assert params == [0, "u1", 1]


def test_empty_conjunction_is_true_and_empty_disjunction_is_false() -> None:
    assert all_of().to_sql() == ("1", [])
    assert any_of().to_sql() == ("0", [])


def test_rank_order_preserves_given_sequence() -> None:
    sql, params = RankOrder(("b", "a")).to_sql()
    assert sql == "ORDER BY CASE r.id WHEN ? THEN ? WHEN ? THEN ? END"
    assert params == ["b", 0, "a", 1]


def test_column_order_breaks_ties_by_rowid() -> None:
    assert ColumnOrder(Column.TITLE, descending=False).to_sql() == (
        "ORDER BY r.title ASC, r.rowid ASC",
        [],
    )
    assert Unordered().to_sql() == ("", [])
