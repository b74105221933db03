from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from larder.app.api.search import SearchAPI
from larder.persistence.local_db import LocalDB

OWNER = "user-alice"
OTHER = "user-bob"


async def seed_recipes(db: LocalDB) -> dict[str, str]:
    """Insert the three-recipe fixture set and return IDs keyed by title."""

    recipes = db.recipes
    cake = await recipes.create_recipe(
        OWNER,
        title="Chocolate Cake",
        description="Rich layered sponge",
        cuisine="Italian",
        difficulty="medium",
        servings=8,
        prep_time_minutes=30,
        cook_time_minutes=45,
        ingredients=[
            {"name": "dark chocolate", "amount": "200", "unit": "g"},
            {"name": "flour", "amount": "250", "unit": "g"},
            {"name": "eggs", "amount": "4"},
        ],
        instructions=["Melt the chocolate", "Fold in flour and eggs", "Bake"],
        tags=["dessert", "baking"],
        images=[{"filename": "cake.jpg", "file_size": 1024, "is_hero": True}],
    )
    brownies = await recipes.create_recipe(
        OWNER,
        title="Brownies",
        description="Fudgy chocolate squares",
        cuisine="American",
        difficulty="easy",
        servings=12,
        prep_time_minutes=15,
        cook_time_minutes=25,
        ingredients=[{"name": "cocoa", "amount": "60", "unit": "g"}],
        instructions=["Mix everything", "Bake in a tray"],
        tags=["dessert"],
    )
    soup = await recipes.create_recipe(
        OWNER,
        title="Chicken Soup",
        description="Clear broth with noodles",
        cuisine="Chinese",
        difficulty="easy",
        servings=4,
        prep_time_minutes=10,
        cook_time_minutes=60,
        ingredients=[
            {"name": "chicken thighs", "amount": "500", "unit": "g"},
            {"name": "noodles", "amount": "200", "unit": "g"},
        ],
        instructions=["Simmer the chicken", "Add noodles"],
        tags=["soup"],
    )
    return {"Chocolate Cake": cake, "Brownies": brownies, "Chicken Soup": soup}


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "larder.sqlite3"


@pytest.fixture
def run_with_api(db_path: Path) -> Callable[..., Any]:
    """Run ``scenario(api, ids)`` against a fresh, seeded database.

    Connection pools are bound to the running loop, so the whole scenario
    executes inside a single ``asyncio.run`` call.
    """

    def _run(
        scenario: Callable[[SearchAPI, dict[str, str]], Awaitable[Any]],
        *,
        seed: bool = True,
    ) -> Any:
        async def _main() -> Any:
            async with LocalDB(db_path) as db:
                api = SearchAPI(db)
                await api.start()
                ids = await seed_recipes(db) if seed else {}
                try:
                    return await scenario(api, ids)
                finally:
                    await api.stop()

        return asyncio.run(_main())

    return _run


@pytest.fixture
def seed() -> Callable[[LocalDB], Awaitable[dict[str, str]]]:
    return seed_recipes


class Rendezvous:
    """Release every waiter only once ``parties`` calls are in flight."""

    def __init__(self, parties: int) -> None:
        self.parties = parties
        self.arrived = 0
        self.released = asyncio.Event()

    async def wait(self) -> None:
        self.arrived += 1
        if self.arrived == self.parties:
            self.released.set()
        await self.released.wait()


@pytest.fixture
def rendezvous() -> type[Rendezvous]:
    return Rendezvous
