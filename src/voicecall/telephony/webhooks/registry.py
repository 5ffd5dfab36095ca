"""
Listener registry for webhook events.

Handlers are registered per message type or on the wildcard channel. Dispatch
order is type-specific handlers in registration order, then wildcard
handlers. Coroutine handlers are scheduled as tasks on the running loop and
not awaited by emit(); with no running loop they run to completion inside
emit().
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable

from voicecall.shared.logging import get_logger
from voicecall.telephony.events import WILDCARD, WebhookEvent, WebhookEventType

logger = get_logger(__name__)

EventHandler = Callable[[WebhookEvent], Any]


def _key(event_type: str | WebhookEventType) -> str:
    if isinstance(event_type, WebhookEventType):
        return event_type.value
    return str(event_type)


class EventRegistry:
    """Explicit type -> handlers mapping plus a wildcard list."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._wildcard: list[EventHandler] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event_type: str | WebhookEventType, handler: EventHandler) -> None:
        key = _key(event_type)
        if key == WILDCARD:
            self._wildcard.append(handler)
        else:
            self._handlers[key].append(handler)

    def on_any(self, handler: EventHandler) -> None:
        self._wildcard.append(handler)

    def off(self, event_type: str | WebhookEventType, handler: EventHandler) -> bool:
        key = _key(event_type)
        handlers = self._wildcard if key == WILDCARD else self._handlers.get(key, [])
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        return True

    def listeners(self, event_type: str | WebhookEventType) -> list[EventHandler]:
        key = _key(event_type)
        if key == WILDCARD:
            return list(self._wildcard)
        return list(self._handlers.get(key, []))

    def emit(self, event: WebhookEvent) -> int:
        """Deliver an event to its type listeners, then to wildcard listeners.

        Handler failures are logged and never propagate.

        Returns:
            Number of handlers invoked.
        """
        handlers = [*self._handlers.get(event.type, []), *self._wildcard]
        for handler in handlers:
            self._invoke(handler, event)
        return len(handlers)

    def _invoke(self, handler: EventHandler, event: WebhookEvent) -> None:
        try:
            result = handler(event)
        except Exception:
            logger.exception(
                "Webhook listener failed",
                extra={"event_type": event.type, "call_id": event.call_id},
            )
            return

        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._run_outside_loop(result, event)
            return

        task = asyncio.ensure_future(result, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _run_outside_loop(self, result: Any, event: WebhookEvent) -> None:
        """Finish a coroutine listener when emit() was called from sync code."""
        if not inspect.iscoroutine(result):
            logger.error(
                "Cannot await webhook listener result outside an event loop",
                extra={"event_type": event.type, "call_id": event.call_id},
            )
            return

        try:
            asyncio.run(result)
        except Exception:
            logger.exception(
                "Async webhook listener failed",
                extra={"event_type": event.type, "call_id": event.call_id},
            )

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async webhook listener failed", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_for_listeners(self) -> None:
        """Wait until every scheduled coroutine listener has finished."""
        while True:
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)
