"""Search pipeline component interfaces and defaults."""
from __future__ import annotations

from .exceptions import InvalidSearchParams
from .params import SearchParams
from .tag_resolver import BaseTagResolver, DefaultTagResolver
from .planner import (
    BaseQueryPlanner,
    DefaultQueryPlanner,
    IndexFailure,
    IndexHits,
    QueryPlan,
    resolve_text_predicate,
)
from .paginator import BaseResultPaginator, DefaultResultPaginator, Page
from .hydrator import BaseDetailHydrator, DefaultDetailHydrator
from .pipeline import (
    SearchPipeline,
    SearchPipelineComponents,
    SearchPipelineResult,
)

__all__ = [
    "InvalidSearchParams",
    "SearchParams",
    "BaseTagResolver",
    "DefaultTagResolver",
    "BaseQueryPlanner",
    "DefaultQueryPlanner",
    "IndexFailure",
    "IndexHits",
    "QueryPlan",
    "resolve_text_predicate",
    "BaseResultPaginator",
    "DefaultResultPaginator",
    "Page",
    "BaseDetailHydrator",
    "DefaultDetailHydrator",
    "SearchPipeline",
    "SearchPipelineComponents",
    "SearchPipelineResult",
]
