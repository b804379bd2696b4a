from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from bindwire.type_key import TypeKey


@runtime_checkable
class SessionListener(Protocol):
    """Receive a notification after the session builds a fresh instance."""

    def after_injection(self, key: TypeKey, instance: Any) -> None:
        """Handle a freshly constructed ``instance`` for ``key``."""
        ...


class CallbackListener:
    """Adapt a plain callable to the ``SessionListener`` protocol."""

    __slots__ = ("_callback",)

    def __init__(self, callback: Callable[[TypeKey, Any], None]) -> None:
        self._callback = callback

    def after_injection(self, key: TypeKey, instance: Any) -> None:
        self._callback(key, instance)

    def __repr__(self) -> str:
        return f"CallbackListener({self._callback!r})"
