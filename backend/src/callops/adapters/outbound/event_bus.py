"""In-process event bus for provider workflow events.

Subscribers are keyed by ``event_type``; publishing fans out to every
subscriber concurrently.  A failing subscriber is logged and never breaks
the workflow that published the event.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Callable, Coroutine

import structlog

from callops.domain.events import DomainEvent
from callops.ports.outbound import EventBusPort

logger = structlog.get_logger(__name__)

EventHandler = Callable[[DomainEvent], Coroutine[Any, Any, None]]


class InProcessEventBus(EventBusPort):
    """Async in-memory event bus with fan-out to multiple subscribers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    async def publish(self, event: DomainEvent) -> None:
        handlers = list(self._handlers.get(event.event_type, ()))
        if not handlers:
            logger.debug("event_no_handlers", event_type=event.event_type)
            return

        results = await asyncio.gather(
            *(h(event) for h in handlers),
            return_exceptions=True,
        )
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "event_handler_error",
                    event_type=event.event_type,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(result),
                )
        logger.debug(
            "event_published",
            event_type=event.event_type,
            handler_count=len(handlers),
        )

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("event_handler_registered", event_type=event_type)

    def subscribers(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))
