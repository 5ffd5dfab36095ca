"""
Functions the assistant can call during a conversation.

Handlers take the parameters mapping sent by the provider and return a JSON
value that is reported back to the call as functionReturn.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Mapping

import anyio

from voicecall.shared.logging import get_logger

logger = get_logger(__name__)

FunctionHandler = Callable[[dict[str, Any]], Any]

FUNCTION_NOT_FOUND = {"error": "Function not found"}


def check_availability(parameters: dict[str, Any]) -> dict[str, Any]:
    """Report open appointment slots."""
    return {"available": True, "slots": ["10:00", "14:00", "16:00"]}


def confirm_appointment(parameters: dict[str, Any]) -> dict[str, Any]:
    return {"confirmed": True, "confirmationNumber": "APT-12345"}


DEFAULT_FUNCTIONS: dict[str, FunctionHandler] = {
    "checkAvailability": check_availability,
    "confirmAppointment": confirm_appointment,
}


class FunctionRegistry:
    """Name -> handler mapping used for function-call webhooks."""

    def __init__(
        self,
        functions: Mapping[str, FunctionHandler] | None = None,
        include_defaults: bool = True,
    ) -> None:
        self._functions: dict[str, FunctionHandler] = dict(DEFAULT_FUNCTIONS) if include_defaults else {}
        if functions:
            self._functions.update(functions)

    def register(self, name: str, handler: FunctionHandler) -> None:
        self._functions[name] = handler

    def names(self) -> list[str]:
        return sorted(self._functions)

    async def execute(self, name: str | None, parameters: dict[str, Any] | None = None) -> Any:
        """Run a registered function.

        Sync handlers run in a worker thread. Unknown names return
        FUNCTION_NOT_FOUND instead of raising.
        """
        handler = self._functions.get(name) if name else None
        if handler is None:
            logger.warning("Unknown function", extra={"function": name})
            return dict(FUNCTION_NOT_FOUND)

        params = dict(parameters or {})
        if inspect.iscoroutinefunction(handler):
            return await handler(params)

        result = await anyio.to_thread.run_sync(handler, params)
        if inspect.isawaitable(result):
            result = await result
        return result
