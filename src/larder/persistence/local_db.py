import logging
from pathlib import Path
from typing import TypeVar, cast

import aiosqlite
from aiosqlitepool import SQLiteConnectionPool
from aiosqlitepool.protocols import Connection as SQLitePoolConnection

from larder.settings import PACKAGE_DIR, settings

from larder.app.db.base import run_in_transaction
from larder.app.db.events import RepositoryEventBus
from larder.app.db.recipes import RecipesRepository
from larder.app.db.recipe_queries import RecipeQueriesRepository
from larder.app.db.search_index import SearchIndexRepository
from larder.app.db.search_history import SearchHistoryRepository


RepositoryT = TypeVar("RepositoryT")

SCHEMA_PATH = PACKAGE_DIR / "sql" / "schema.sql"

logger = logging.getLogger(__name__)


class LocalDB:
    """Facade around SQLite repositories with shared connection pooling."""

    def __init__(self, db_path: str | Path | None = None):
        raw_path = Path(db_path or settings.DATABASE.path)
        self.db_path = raw_path.expanduser().resolve(strict=False)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool: SQLiteConnectionPool | None = None
        self._events: RepositoryEventBus | None = None
        self._recipes: RecipesRepository | None = None
        self._recipe_queries: RecipeQueriesRepository | None = None
        self._search_index: SearchIndexRepository | None = None
        self._search_history: SearchHistoryRepository | None = None

    async def __aenter__(self) -> "LocalDB":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def init(self) -> None:
        if self.pool is not None:
            return

        is_new = not self.db_path.exists()
        acquisition_timeout = int(settings.DATABASE.pool_acquire_timeout)

        async def _connection_factory() -> SQLitePoolConnection:
            return cast(SQLitePoolConnection, await self._create_connection())

        pool = SQLiteConnectionPool(
            _connection_factory,
            pool_size=int(settings.DATABASE.pool_size),
            acquisition_timeout=acquisition_timeout,
        )
        self.pool = pool
        try:
            await self._ensure_schema(is_new)
            self._configure_repositories()
        except Exception:
            await pool.close()
            self.pool = None
            self._reset_repositories()
            raise

    async def close(self) -> None:
        if self.pool is not None:
            try:
                await self.pool.close()
            finally:
                self.pool = None
        self._reset_repositories()

    def _reset_repositories(self) -> None:
        if self._events is not None:
            self._events.clear()
        self._events = None
        self._recipes = None
        self._recipe_queries = None
        self._search_index = None
        self._search_history = None

    async def _create_connection(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(
            self.db_path, timeout=float(settings.DATABASE.timeout)
        )
        await conn.execute(
            f"PRAGMA busy_timeout = {int(settings.DATABASE.busy_timeout)}"
        )
        await conn.execute(f"PRAGMA mmap_size = {int(settings.DATABASE.mmap_size)}")
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA synchronous = NORMAL")
        await conn.execute("PRAGMA temp_store = MEMORY")
        conn.row_factory = aiosqlite.Row
        return conn

    async def _ensure_schema(self, is_new: bool) -> None:
        if is_new:
            logger.info("Creating new database at %s", self.db_path)
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")
        schema_sql = SCHEMA_PATH.read_text()
        async with self.pool.connection() as conn:
            await run_in_transaction(conn, conn.executescript, schema_sql)

    def _configure_repositories(self) -> None:
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")
        self._events = RepositoryEventBus()
        self._recipes = RecipesRepository(self.pool, self._events)
        self._recipe_queries = RecipeQueriesRepository(self.pool)
        self._search_index = SearchIndexRepository(self.pool)
        self._search_history = SearchHistoryRepository(
            self.pool, max_entries=int(settings.SEARCH.recent_limit)
        )

    def _require_repository(
        self, repository: RepositoryT | None, name: str
    ) -> RepositoryT:
        if repository is None:
            raise RuntimeError(
                f"{name} repository is not initialised; call init() before accessing it."
            )
        return repository

    @property
    def events(self) -> RepositoryEventBus:
        """Return the event bus shared by the repositories."""

        return self._require_repository(self._events, "Event bus")

    @property
    def recipes(self) -> RecipesRepository:
        """Return the recipe write repository.

        Raises a :class:`RuntimeError` when accessed before the database has been
        initialised so configuration errors are caught early.
        """

        return self._require_repository(self._recipes, "Recipes")

    @property
    def recipe_queries(self) -> RecipeQueriesRepository:
        return self._require_repository(self._recipe_queries, "Recipe queries")

    @property
    def search_index(self) -> SearchIndexRepository:
        return self._require_repository(self._search_index, "Search index")

    @property
    def search_history(self) -> SearchHistoryRepository:
        """Return the search history repository."""

        return self._require_repository(self._search_history, "Search history")
