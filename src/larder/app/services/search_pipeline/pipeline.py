"""Composable pipeline orchestration for recipe searches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .hydrator import BaseDetailHydrator
from .paginator import BaseResultPaginator
from .params import SearchParams
from .planner import BaseQueryPlanner, QueryPlan


@dataclass(slots=True)
class SearchPipelineComponents:
    """Concrete pipeline step implementations."""

    planner: BaseQueryPlanner
    paginator: BaseResultPaginator
    hydrator: BaseDetailHydrator


@dataclass(slots=True)
class SearchPipelineResult:
    """Outcome of executing the search pipeline."""

    plan: QueryPlan
    recipes: list[dict[str, Any]]
    total: int
    has_more: bool


@dataclass(slots=True)
class SearchPipeline:
    """Execute the configured search pipeline components in order."""

    components: SearchPipelineComponents

    async def execute(self, user_id: str, params: SearchParams) -> SearchPipelineResult:
        """Plan, paginate and hydrate the recipes matching ``params``."""

        comps = self.components

        plan = await comps.planner.plan(user_id, params)
        page = await comps.paginator.paginate(plan, params)
        recipes = await comps.hydrator.hydrate(page.rows)

        return SearchPipelineResult(
            plan=plan,
            recipes=recipes,
            total=page.total,
            has_more=page.has_more,
        )


__all__ = [
    "SearchPipeline",
    "SearchPipelineComponents",
    "SearchPipelineResult",
]
