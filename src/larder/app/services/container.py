"""Application service and lifecycle helpers."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass

from larder.persistence.local_db import LocalDB
from larder.app.api.search import SearchAPI
from larder.app.services.search_cache import TTLSearchCache
from larder.app.services.search_config import SearchConfig
from larder.settings import settings


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppServices:
    """Bundle long-lived application services."""

    db: LocalDB
    search_config: SearchConfig
    search_cache: TTLSearchCache
    search_api: SearchAPI

    @classmethod
    def create(cls, db_path: str | None = None) -> "AppServices":
        db = LocalDB(db_path)
        search_config = SearchConfig.from_settings(settings)
        search_cache = TTLSearchCache(
            maxsize=search_config.cache.maxsize, ttl=search_config.cache.ttl
        )
        search_api = SearchAPI(db, search_config, cache=search_cache)
        return cls(
            db=db,
            search_config=search_config,
            search_cache=search_cache,
            search_api=search_api,
        )


class AppLifecycle:
    """Manage startup and shutdown of long-lived application services."""

    def __init__(self, services: AppServices) -> None:
        self._services = services
        self._lock = asyncio.Lock()
        self._started = False

    async def __aenter__(self) -> "AppLifecycle":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Initialise the database and attach search services to it."""

        async with self._lock:
            if self._started:
                return

            logger.debug("Starting application lifecycle: db.init -> search_api.start")
            db_initialised = False
            try:
                await self._services.db.init()
                db_initialised = True
                await self._services.search_api.start()
            except Exception:
                logger.debug(
                    "Startup failed; rolling back initialised services", exc_info=True
                )
                with suppress(Exception):
                    if db_initialised:
                        logger.debug("Rollback: closing database after startup failure")
                        await self._services.db.close()
                raise

            self._started = True
            logger.info("Application lifecycle started")

    async def stop(self) -> None:
        """Detach search services and close the database."""

        async with self._lock:
            if not self._started:
                return
            logger.debug("Stopping application lifecycle: search_api.stop -> db.close")
            self._started = False

        errors: list[Exception] = []

        try:
            await self._services.search_api.stop()
        except Exception as exc:
            logger.exception("Failed to stop search API cleanly")
            errors.append(exc)

        try:
            await self._services.db.close()
        except Exception as exc:
            logger.exception("Failed to close database cleanly")
            errors.append(exc)

        if errors:
            raise errors[0]

        logger.info("Application lifecycle stopped")

    @property
    def services(self) -> AppServices:
        return self._services


def get_services() -> AppServices:
    """Return the :class:`AppServices` container registered on the app."""

    from quart import current_app

    services = current_app.extensions.get("larder")
    if services is None:
        raise RuntimeError("App services container is not initialised")
    return services


def get_db() -> LocalDB:
    """Convenience accessor for the application database."""

    return get_services().db


def get_search_api() -> SearchAPI:
    """Convenience accessor for the search API service."""

    return get_services().search_api
