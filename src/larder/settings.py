from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent


def _resolve_config_dir() -> Path | None:
    env_override = os.environ.get("LARDER_CONFIG_DIR")
    candidates: list[Path] = []

    if env_override:
        candidates.append(Path(env_override).expanduser())

    candidates.append(PROJECT_ROOT / "config")
    candidates.append(PROJECT_ROOT.parent / "config")

    for candidate in candidates:
        expanded = candidate.expanduser()
        if expanded.is_dir():
            return expanded.resolve()

    if env_override:
        searched = ", ".join(str(path) for path in candidates)
        raise RuntimeError(
            f"Unable to locate configuration directory. Searched: {searched}. "
            "Set LARDER_CONFIG_DIR to a valid directory."
        )
    # Packaged installs run on the in-code defaults plus LARDER_* variables.
    return None


CONFIG_DIR = _resolve_config_dir()


def _cpu_count(default: int = 4) -> int:
    count = os.cpu_count() or default
    return max(count, 1)


DEFAULTS: dict[str, Any] = {
    "APP_NAME": "Larder",
    "SECRET_KEY": None,
    "LOG_LEVEL": "INFO",
    "APP": {
        "host": "127.0.0.1",
        "port": 5000,
    },
    "AUTH": {
        "user_header": "X-User-Id",
    },
    "LIMITS": {
        "max_search_query_length": 512,
    },
    "SEARCH": {
        "fts_candidate_limit": 500,
        "default_limit": 20,
        "max_limit": 50,
        "recent_limit": 50,
        "recent_suggestion_limit": 8,
        "suggestion_limit": 10,
    },
    "CACHE": {
        "maxsize": 4096,
    },
    "DATABASE": {
        "path": "larder.sqlite3",
        "pool_size": min(_cpu_count() * 2, 16),
        "pool_acquire_timeout": 10,
        "timeout": 5.0,
        "busy_timeout": 5000,
        "mmap_size": 10 * 1024 * 1024,
    },
}

_settings_files: list[Path] = []
if CONFIG_DIR is not None:
    _settings_files = [
        CONFIG_DIR / "settings.toml",
        CONFIG_DIR / ".secrets.toml",
        CONFIG_DIR / "settings.local.toml",
    ]

settings = Dynaconf(
    envvar_prefix="LARDER",
    settings_files=_settings_files,
    environments=True,
    env_switcher="LARDER_ENV",
    load_dotenv=True,
    envvar_parse_values=True,
    merge_enabled=True,
    defaults=DEFAULTS,
)


_MISSING = object()


def _ensure_defaults(prefix: str, defaults: dict[str, Any]) -> None:
    for key, value in defaults.items():
        dotted = f"{prefix}.{key}" if prefix else key
        existing = settings.get(dotted, _MISSING)

        if isinstance(value, dict):
            if existing is _MISSING:
                settings.set(dotted, value.copy())
                existing = settings.get(dotted, _MISSING)
            # Only recurse into mappings so user-provided primitives survive.
            if isinstance(existing, Mapping):
                _ensure_defaults(dotted, value)
            continue

        if existing is _MISSING:
            settings.set(dotted, value)


_ensure_defaults("", DEFAULTS)


def _normalise_int(dotted: str, *, minimum: int) -> None:
    raw = settings.get(dotted)
    default = DEFAULTS
    for part in dotted.split("."):
        default = default[part]
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = int(default)
    if value < minimum:
        value = int(default)
    settings.set(dotted, value)


_normalise_int("DATABASE.pool_size", minimum=1)
_normalise_int("SEARCH.fts_candidate_limit", minimum=1)
_normalise_int("SEARCH.max_limit", minimum=1)
_normalise_int("CACHE.maxsize", minimum=1)

__all__ = ["settings"]
