from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List

EventHandler = Callable[..., Awaitable[None]]

RECIPE_CREATED_EVENT = "recipe.created"
RECIPE_UPDATED_EVENT = "recipe.updated"
RECIPE_DELETED_EVENT = "recipe.deleted"


class RepositoryEventBus:
    """Async event bus connecting recipe writes to derived-state maintainers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler to be invoked when *event* is emitted."""
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            self._logger.debug("Attempted to remove unknown handler %r", handler)

    async def emit(self, event: str, *args, **kwargs) -> None:
        """Emit *event* and await all registered handlers.

        Handler failures are logged and never reach the writer that emitted
        the event.
        """
        handlers = list(self._handlers.get(event, ()))
        if not handlers:
            return

        coroutines = [handler(*args, **kwargs) for handler in handlers]
        results = await asyncio.gather(*coroutines, return_exceptions=True)

        for result in results:
            if isinstance(result, Exception):
                self._logger.error(
                    "Repository event handler failed for event '%s'",
                    event,
                    exc_info=result,
                )

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
