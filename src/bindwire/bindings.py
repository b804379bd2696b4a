"""Binding variants describing how a requested type is satisfied."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from bindwire.exceptions import InvalidBindingError
from bindwire.type_key import TypeKey

Provider: TypeAlias = Callable[[TypeKey], Any]
"""A user function called with the requested key to produce an instance."""


def _require_key(key: TypeKey | None) -> None:
    if key is None:
        msg = "Binding requires a non-null source key."
        raise InvalidBindingError(msg)


@dataclass(frozen=True, slots=True)
class ClassBinding:
    """Requests for ``from_key`` are satisfied by building ``to_key``."""

    from_key: TypeKey
    to_key: TypeKey

    def __post_init__(self) -> None:
        _require_key(self.from_key)
        _require_key(self.to_key)

    def __str__(self) -> str:
        return f"{self.from_key} -> {self.to_key}"


@dataclass(frozen=True, slots=True)
class InstanceBinding:
    """Requests for ``from_key`` return a fixed pre-built value."""

    from_key: TypeKey
    instance: Any

    def __post_init__(self) -> None:
        _require_key(self.from_key)

    def __str__(self) -> str:
        return f"{self.from_key} -> instance of {type(self.instance).__qualname__}"


@dataclass(frozen=True, slots=True)
class SingletonBinding:
    """Requests for ``from_key`` share one instance of ``to_key``.

    The instance is cached under ``from_key``. Eager singletons are built
    when the session is created.
    """

    from_key: TypeKey
    to_key: TypeKey
    is_eager: bool = False

    def __post_init__(self) -> None:
        _require_key(self.from_key)
        _require_key(self.to_key)

    def __str__(self) -> str:
        kind = "eager singleton" if self.is_eager else "singleton"
        return f"{self.from_key} -> {kind} {self.to_key}"


@dataclass(frozen=True, slots=True)
class ProviderBinding:
    """Requests for ``from_key`` are satisfied by calling ``provider(from_key)``."""

    from_key: TypeKey
    provider: Provider

    def __post_init__(self) -> None:
        _require_key(self.from_key)
        if not callable(self.provider):
            msg = f"Provider for {self.from_key} must be callable, got {self.provider!r}."
            raise InvalidBindingError(msg)

    def __str__(self) -> str:
        name = getattr(self.provider, "__qualname__", repr(self.provider))
        return f"{self.from_key} -> provider {name}"


Binding: TypeAlias = ClassBinding | InstanceBinding | SingletonBinding | ProviderBinding


def finalize_bindings(bindings: list[Binding]) -> dict[TypeKey, Binding]:
    """Collapse an ordered binding list so that the last binding per key wins.

    The returned mapping is ordered by the registration position of the
    surviving bindings.
    """
    last_index: dict[TypeKey, int] = {}
    for index, binding in enumerate(bindings):
        last_index[binding.from_key] = index

    survivors = sorted(last_index.values())
    return {bindings[index].from_key: bindings[index] for index in survivors}
