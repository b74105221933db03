"""Typed predicate and ordering expressions over the ``recipes`` table.

The query planner composes these objects; the store adapter compiles them
into parameterized SQL. Column names come only from :class:`Column`, and
every value travels as a bound parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence

from larder.app.db.base import like_pattern

SqlFragment = tuple[str, list[Any]]


class Column(str, Enum):
    ID = "id"
    USER_ID = "user_id"
    TITLE = "title"
    DESCRIPTION = "description"
    SERVINGS = "servings"
    PREP_TIME = "prep_time_minutes"
    COOK_TIME = "cook_time_minutes"
    DIFFICULTY = "difficulty"
    CUISINE = "cuisine"
    IS_PUBLIC = "is_public"
    IS_ARCHIVED = "is_archived"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"

    @property
    def sql(self) -> str:
        return f"r.{self.value}"


def _bind(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    return value


class Predicate(Protocol):
    def to_sql(self) -> SqlFragment: ...


@dataclass(frozen=True, slots=True)
class Eq:
    column: Column
    value: Any

    def to_sql(self) -> SqlFragment:
        if self.value is None:
            return f"{self.column.sql} IS NULL", []
        return f"{self.column.sql} = ?", [_bind(self.value)]


@dataclass(frozen=True, slots=True)
class In:
    """Membership test. An empty value list matches nothing."""

    column: Column
    values: tuple[Any, ...]

    def to_sql(self) -> SqlFragment:
        if not self.values:
            return "0", []
        marks = ",".join("?" * len(self.values))
        return f"{self.column.sql} IN ({marks})", [_bind(v) for v in self.values]


@dataclass(frozen=True, slots=True)
class AtMost:
    """Upper bound on a numeric column, treating NULL as zero."""

    column: Column
    value: int | float

    def to_sql(self) -> SqlFragment:
        return f"COALESCE({self.column.sql}, 0) <= ?", [self.value]


@dataclass(frozen=True, slots=True)
class Contains:
    """Case-insensitive substring match across any of ``columns``."""

    columns: tuple[Column, ...]
    text: str

    def to_sql(self) -> SqlFragment:
        pattern = like_pattern(self.text)
        clauses = [f"{column.sql} LIKE ? ESCAPE '\\'" for column in self.columns]
        return f"({' OR '.join(clauses)})", [pattern] * len(self.columns)


@dataclass(frozen=True, slots=True)
class And:
    parts: tuple[Predicate, ...]

    def to_sql(self) -> SqlFragment:
        if not self.parts:
            return "1", []
        return _join(self.parts, " AND ")


@dataclass(frozen=True, slots=True)
class Or:
    parts: tuple[Predicate, ...]

    def to_sql(self) -> SqlFragment:
        if not self.parts:
            return "0", []
        return _join(self.parts, " OR ")


def _join(parts: Sequence[Predicate], glue: str) -> SqlFragment:
    clauses: list[str] = []
    params: list[Any] = []
    for part in parts:
        clause, part_params = part.to_sql()
        clauses.append(f"({clause})")
        params.extend(part_params)
    return glue.join(clauses), params


def all_of(*parts: Predicate) -> And:
    return And(tuple(parts))


def any_of(*parts: Predicate) -> Or:
    return Or(tuple(parts))


class Ordering(Protocol):
    def to_sql(self) -> SqlFragment: ...


@dataclass(frozen=True, slots=True)
class ColumnOrder:
    column: Column
    descending: bool = True

    def to_sql(self) -> SqlFragment:
        direction = "DESC" if self.descending else "ASC"
        # rowid keeps pages stable when sort values tie.
        return f"ORDER BY {self.column.sql} {direction}, r.rowid {direction}", []


@dataclass(frozen=True, slots=True)
class RankOrder:
    """Preserve the order in which ``recipe_ids`` were ranked upstream."""

    recipe_ids: tuple[str, ...]

    def to_sql(self) -> SqlFragment:
        if not self.recipe_ids:
            return "", []
        whens = " ".join("WHEN ? THEN ?" for _ in self.recipe_ids)
        params: list[Any] = []
        for position, recipe_id in enumerate(self.recipe_ids):
            params.extend((recipe_id, position))
        return f"ORDER BY CASE r.id {whens} END", params


@dataclass(frozen=True, slots=True)
class Unordered:
    def to_sql(self) -> SqlFragment:
        return "", []


DEFAULT_ORDER = ColumnOrder(Column.CREATED_AT, descending=True)


__all__ = [
    "AtMost",
    "And",
    "Column",
    "ColumnOrder",
    "Contains",
    "DEFAULT_ORDER",
    "Eq",
    "In",
    "Or",
    "Ordering",
    "Predicate",
    "RankOrder",
    "SqlFragment",
    "Unordered",
    "all_of",
    "any_of",
]
