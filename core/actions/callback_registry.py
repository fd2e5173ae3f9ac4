"""
core.actions.callback_registry

Named callbacks that JSON action descriptors can invoke by name
(`custom` and `executeCallback` actions).

A handler receives a single params dict and may return a value (or
nothing). It may be a plain function or a coroutine function; `execute`
always has to be awaited.

    registry = CallbackRegistry()
    registry.register("double", lambda p: p["x"] * 2)
    await registry.execute("double", {"x": 21})   # -> 42

Re-registering a name silently replaces the previous handler, so apps
can override built-in handlers.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from exceptions.exceptions import CallbackNotFoundError


logger = logging.getLogger(__name__)

CallbackHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class CallbackRegistry:
    """Name -> handler map with sync/async execution."""

    def __init__(self) -> None:
        self._callbacks: Dict[str, CallbackHandler] = {}

    def register(self, name: str, handler: CallbackHandler) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Callback name must be a non-empty string")
        if not callable(handler):
            raise TypeError(f"Callback handler for {name!r} is not callable")
        if name in self._callbacks:
            logger.info("[CALLBACKS] Replacing callback: %s", name)
        else:
            logger.info("[CALLBACKS] Registering callback: %s", name)
        self._callbacks[name] = handler

    def unregister(self, name: str) -> None:
        logger.info("[CALLBACKS] Unregistering callback: %s", name)
        self._callbacks.pop(name, None)

    def get(self, name: str) -> Optional[CallbackHandler]:
        handler = self._callbacks.get(name)
        if handler is None:
            logger.warning("[CALLBACKS] Callback not found: %s", name)
        return handler

    def is_registered(self, name: str) -> bool:
        return name in self._callbacks

    def names(self) -> List[str]:
        return list(self._callbacks.keys())

    async def execute(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Run the handler registered under `name` and return its result.

        Raises
        ------
        CallbackNotFoundError
            If nothing is registered under `name`.
        Exception
            Whatever the handler raises is re-raised unchanged.
        """
        handler = self._callbacks.get(name)
        if handler is None:
            logger.error("[CALLBACKS] Callback not registered: %s", name)
            raise CallbackNotFoundError(name)

        logger.info("[CALLBACKS] Executing callback: %s", name)
        logger.debug("[CALLBACKS] Callback params: %r", params)

        try:
            result = handler(dict(params or {}))
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.warning("[CALLBACKS] Error executing callback: %s", name, exc_info=True)
            raise
        return result

    def clear_all(self) -> None:
        logger.info("[CALLBACKS] Clearing all callbacks")
        self._callbacks.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "count": len(self._callbacks),
            "names": self.names(),
        }
