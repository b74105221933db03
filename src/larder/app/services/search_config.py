from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

CACHE_TTL_SECONDS = 300


@dataclass(slots=True, frozen=True)
class SearchLimits:
    """Limits applied to search operations."""

    fts_candidate_limit: int = 500
    default_limit: int = 20
    max_limit: int = 50
    recent_limit: int = 50
    recent_suggestion_limit: int = 8
    suggestion_limit: int = 10
    max_search_query_length: int = 512

    def as_dict(self) -> dict[str, Any]:
        """Return the limits as a plain dictionary."""

        return asdict(self)


@dataclass(slots=True, frozen=True)
class SearchCacheConfig:
    """Sizing for the filter and suggestion cache."""

    maxsize: int = 4096
    ttl: int = CACHE_TTL_SECONDS

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Aggregate search configuration used across services."""

    limits: SearchLimits = SearchLimits()
    cache: SearchCacheConfig = SearchCacheConfig()

    @classmethod
    def from_settings(cls, settings: Any) -> "SearchConfig":
        """Construct a :class:`SearchConfig` from application settings."""

        search_settings = settings.SEARCH
        limits = SearchLimits(
            fts_candidate_limit=int(search_settings.fts_candidate_limit),
            default_limit=int(search_settings.default_limit),
            max_limit=int(search_settings.max_limit),
            recent_limit=int(search_settings.recent_limit),
            recent_suggestion_limit=int(search_settings.recent_suggestion_limit),
            suggestion_limit=int(search_settings.suggestion_limit),
            max_search_query_length=int(settings.LIMITS.max_search_query_length),
        )
        # The TTL is fixed; only the capacity is configurable.
        cache = SearchCacheConfig(maxsize=int(settings.CACHE.maxsize))
        return cls(limits=limits, cache=cache)

    def as_dict(self) -> dict[str, Any]:
        """Return the full configuration as a dictionary."""

        return {
            "limits": self.limits.as_dict(),
            "cache": self.cache.as_dict(),
        }


__all__ = [
    "CACHE_TTL_SECONDS",
    "SearchCacheConfig",
    "SearchConfig",
    "SearchLimits",
]
