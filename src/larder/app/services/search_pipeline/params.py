"""Typed search parameters and their parsing from request mappings."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from larder.app.db.recipes import DIFFICULTIES
from larder.util import str_to_bool, unique_stripped

from .exceptions import InvalidSearchParams

DEFAULT_LIMIT = 20
MAX_LIMIT = 50


@dataclass(slots=True, frozen=True)
class SearchParams:
    """Filter, sort and pagination inputs for one search."""

    query: str | None = None
    cuisine: tuple[str, ...] = ()
    difficulty: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    max_prep_time: int | None = None
    max_cook_time: int | None = None
    servings: int | None = None
    is_public: bool | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @property
    def text(self) -> str:
        return (self.query or "").strip()

    def as_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "cuisine": list(self.cuisine),
            "difficulty": list(self.difficulty),
            "tags": list(self.tags),
            "max_prep_time": self.max_prep_time,
            "max_cook_time": self.max_cook_time,
            "servings": self.servings,
            "is_public": self.is_public,
            "sort_by": self.sort_by,
            "sort_order": self.sort_order,
            "limit": self.limit,
            "offset": self.offset,
        }

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        max_query_length: int | None = None,
    ) -> "SearchParams":
        """Validate request parameters and build :class:`SearchParams`.

        ``data`` may be a plain mapping or a multi-dict exposing ``getlist``;
        list parameters accept repeated keys as well as comma separated values.
        Both ``snake_case`` and ``camelCase`` keys are recognised.
        """

        parser = _ParamReader(data)

        query = parser.scalar("query", "q")
        if query is not None:
            query = query.strip() or None
        if query and max_query_length and len(query) > max_query_length:
            raise InvalidSearchParams(
                f"query must be at most {max_query_length} characters"
            )

        difficulty = tuple(value.lower() for value in parser.values("difficulty"))
        unknown = [value for value in difficulty if value not in DIFFICULTIES]
        if unknown:
            raise InvalidSearchParams(
                f"difficulty must be one of {', '.join(DIFFICULTIES)}"
            )

        limit = parser.integer("limit", default=default_limit)
        if limit < 1 or limit > max_limit:
            raise InvalidSearchParams(f"limit must be between 1 and {max_limit}")
        offset = parser.integer("offset", default=0)
        if offset < 0:
            raise InvalidSearchParams("offset must not be negative")

        is_public_raw = parser.scalar("is_public", "isPublic")
        is_public = None
        if is_public_raw is not None and is_public_raw.strip():
            try:
                is_public = str_to_bool(is_public_raw)
            except ValueError as exc:
                raise InvalidSearchParams("is_public must be a boolean") from exc

        return cls(
            query=query,
            cuisine=tuple(parser.values("cuisine")),
            difficulty=difficulty,
            tags=tuple(parser.values("tags", "tag")),
            max_prep_time=parser.optional_integer(
                "max_prep_time", "maxPrepTime", minimum=0
            ),
            max_cook_time=parser.optional_integer(
                "max_cook_time", "maxCookTime", minimum=0
            ),
            servings=parser.optional_integer("servings", minimum=1),
            is_public=is_public,
            sort_by=parser.scalar("sort_by", "sortBy") or "createdAt",
            sort_order=(parser.scalar("sort_order", "sortOrder") or "desc").lower(),
            limit=limit,
            offset=offset,
        )


class _ParamReader:
    __slots__ = ("data", "_getlist")

    def __init__(self, data: Mapping[str, Any]) -> None:
        self.data = data
        self._getlist = getattr(data, "getlist", None)

    def _raw(self, key: str) -> list[Any]:
        if self._getlist is not None:
            return list(self._getlist(key))
        if key not in self.data:
            return []
        value = self.data[key]
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]

    def scalar(self, *keys: str) -> str | None:
        for key in keys:
            raw = self._raw(key)
            if raw and raw[0] is not None:
                return str(raw[0])
        return None

    def values(self, *keys: str) -> list[str]:
        collected: list[str] = []
        for key in keys:
            for raw in self._raw(key):
                if raw is None:
                    continue
                collected.extend(_split(raw))
        return unique_stripped(collected)

    def integer(self, *keys: str, default: int) -> int:
        value = self.optional_integer(*keys)
        return default if value is None else value

    def optional_integer(self, *keys: str, minimum: int | None = None) -> int | None:
        raw = self.scalar(*keys)
        if raw is None or not raw.strip():
            return None
        try:
            value = int(raw.strip())
        except ValueError as exc:
            raise InvalidSearchParams(f"{keys[0]} must be an integer") from exc
        if minimum is not None and value < minimum:
            raise InvalidSearchParams(f"{keys[0]} must be at least {minimum}")
        return value


def _split(raw: Any) -> Iterable[str]:
    if isinstance(raw, str):
        return raw.split(",")
    return [str(raw)]


__all__ = ["DEFAULT_LIMIT", "MAX_LIMIT", "SearchParams"]
