"""Turn search parameters into a typed predicate plan.

The planner asks the tag resolver for a candidate set first, then resolves
free text through the full-text index. The index outcome is captured as an
:class:`IndexHits` or :class:`IndexFailure` value, and
:func:`resolve_text_predicate` maps that outcome onto a predicate without any
further I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from larder.app.services.search_config import SearchConfig

from .params import SearchParams
from .predicates import (
    AtMost,
    Column,
    Contains,
    Eq,
    In,
    Ordering,
    Predicate,
    RankOrder,
    Unordered,
    all_of,
    any_of,
)
from .tag_resolver import BaseTagResolver

logger = logging.getLogger(__name__)

FALLBACK_COLUMNS = (Column.TITLE, Column.DESCRIPTION, Column.CUISINE)


class SearchIndex(Protocol):
    async def match(self, fts_query: str, limit: int) -> list[str]: ...


@dataclass(slots=True, frozen=True)
class IndexHits:
    recipe_ids: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class IndexFailure:
    error: BaseException


IndexLookup = IndexHits | IndexFailure


@dataclass(slots=True, frozen=True)
class TextMatch:
    """Predicate and relevance ordering derived from a free-text query."""

    predicate: Predicate
    relevance: Ordering
    used_index: bool


@dataclass(slots=True, frozen=True)
class QueryPlan:
    """Everything the paginator needs to run a search."""

    predicate: Predicate
    relevance: Ordering
    empty: bool = False


def build_fts_query(text: str) -> str:
    """Return an FTS5 expression matching any token of ``text`` as a prefix."""

    terms = []
    for token in text.split():
        escaped = token.replace('"', '""')
        terms.append(f'"{escaped}"*')
    return " OR ".join(terms)


def resolve_text_predicate(text: str, lookup: IndexLookup) -> TextMatch:
    """Choose between index hits and the substring fallback for ``text``."""

    if isinstance(lookup, IndexHits) and lookup.recipe_ids:
        return TextMatch(
            predicate=In(Column.ID, lookup.recipe_ids),
            relevance=RankOrder(lookup.recipe_ids),
            used_index=True,
        )
    return TextMatch(
        predicate=Contains(FALLBACK_COLUMNS, text),
        relevance=Unordered(),
        used_index=False,
    )


class BaseQueryPlanner(Protocol):
    """Interface for building query plans."""

    async def plan(self, user_id: str, params: SearchParams) -> QueryPlan: ...


class DefaultQueryPlanner:
    """Combine visibility, tag, text and attribute filters into one plan."""

    def __init__(
        self,
        search_index: SearchIndex,
        tag_resolver: BaseTagResolver,
        config: SearchConfig,
    ) -> None:
        self._index = search_index
        self._tag_resolver = tag_resolver
        self._config = config

    async def lookup(self, text: str) -> IndexLookup:
        fts_query = build_fts_query(text)
        try:
            recipe_ids = await self._index.match(
                fts_query, self._config.limits.fts_candidate_limit
            )
        except Exception as exc:
            logger.warning(
                "Full-text lookup failed for %r, using substring fallback",
                text,
                exc_info=True,
            )
            return IndexFailure(exc)
        return IndexHits(tuple(recipe_ids))

    async def plan(self, user_id: str, params: SearchParams) -> QueryPlan:
        predicates: list[Predicate] = [Eq(Column.IS_ARCHIVED, False)]
        if params.is_public is not None:
            predicates.append(Eq(Column.IS_PUBLIC, params.is_public))
        else:
            predicates.append(
                any_of(Eq(Column.USER_ID, user_id), Eq(Column.IS_PUBLIC, True))
            )

        tagged = await self._tag_resolver.resolve(params.tags)
        if tagged is not None:
            if not tagged:
                logger.debug("No recipes carry all requested tags %s", params.tags)
                return QueryPlan(
                    predicate=In(Column.ID, ()), relevance=Unordered(), empty=True
                )
            predicates.append(In(Column.ID, tuple(tagged)))

        relevance: Ordering = Unordered()
        text = params.text
        if text:
            lookup = await self.lookup(text)
            match = resolve_text_predicate(text, lookup)
            if not match.used_index:
                logger.debug("Using substring fallback for query %r", text)
            predicates.append(match.predicate)
            relevance = match.relevance

        if params.cuisine:
            predicates.append(In(Column.CUISINE, params.cuisine))
        if params.difficulty:
            predicates.append(In(Column.DIFFICULTY, params.difficulty))
        if params.max_prep_time is not None:
            predicates.append(AtMost(Column.PREP_TIME, params.max_prep_time))
        if params.max_cook_time is not None:
            predicates.append(AtMost(Column.COOK_TIME, params.max_cook_time))
        if params.servings is not None:
            predicates.append(Eq(Column.SERVINGS, params.servings))

        return QueryPlan(predicate=all_of(*predicates), relevance=relevance)


__all__ = [
    "BaseQueryPlanner",
    "DefaultQueryPlanner",
    "IndexFailure",
    "IndexHits",
    "IndexLookup",
    "QueryPlan",
    "SearchIndex",
    "TextMatch",
    "build_fts_query",
    "resolve_text_predicate",
]
