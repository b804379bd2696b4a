"""Constructor introspection used by the session for default construction."""

from __future__ import annotations

import inspect
import threading
import types
import typing
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeGuard, get_type_hints

from bindwire.defaults import DEFAULT_CONSTRUCTION_IGNORES, DEFAULT_IGNORED_BASE_TYPES
from bindwire.exceptions import UnresolvableTypeError
from bindwire.type_key import TypeKey

_NO_DEFAULT: Any = inspect.Parameter.empty


class _UseDefault:
    def __repr__(self) -> str:
        return "USE_DEFAULT"


USE_DEFAULT: Any = _UseDefault()
"""Argument placeholder telling ``construct`` to keep the parameter default."""


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    """Information about one constructor parameter."""

    name: str
    key: TypeKey | None
    """The declared type, or ``None`` when the parameter is not annotated."""
    has_default: bool
    default: Any = _NO_DEFAULT
    positional_only: bool = False


class TypeIntrospector(Protocol):
    """Describe and invoke the primary constructor of a type."""

    def describe_constructor(self, key: TypeKey) -> Sequence[ParameterInfo]:
        """Return constructor parameters in declaration order."""
        ...

    def construct(self, key: TypeKey, args: Sequence[Any]) -> Any:
        """Invoke the constructor with arguments matching ``describe_constructor``."""
        ...


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations."""
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_value_type(candidate: type[Any]) -> bool:
    """Return true for builtins and value types that are never built automatically."""
    return candidate in DEFAULT_CONSTRUCTION_IGNORES or issubclass(
        candidate,
        DEFAULT_IGNORED_BASE_TYPES,
    )


def is_protocol(candidate: type[Any]) -> bool:
    if hasattr(typing, "is_protocol"):
        return typing.is_protocol(candidate)
    return bool(getattr(candidate, "_is_protocol", False))


class SignatureIntrospector:
    """Introspect classes through ``__init__`` signatures and type hints.

    The primary constructor of a class is its ``__init__``. Variadic
    parameters are never injected. Descriptions are cached per key.
    """

    def __init__(self) -> None:
        self._cache: dict[TypeKey, tuple[ParameterInfo, ...]] = {}
        self._lock = threading.Lock()

    def describe_constructor(self, key: TypeKey) -> tuple[ParameterInfo, ...]:
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        self._ensure_constructible(key)
        description = self._describe(key)
        with self._lock:
            return self._cache.setdefault(key, description)

    def construct(self, key: TypeKey, args: Sequence[Any]) -> Any:
        """Call the class with ``args``; ``USE_DEFAULT`` entries keep parameter defaults."""
        params = self.describe_constructor(key)
        positional: list[Any] = []
        keywords: dict[str, Any] = {}
        for info, value in zip(params, args, strict=True):
            if info.positional_only:
                positional.append(info.default if value is USE_DEFAULT else value)
            elif value is not USE_DEFAULT:
                keywords[info.name] = value
        return key.value(*positional, **keywords)

    def _ensure_constructible(self, key: TypeKey) -> None:
        candidate = key.value
        if not is_runtime_class(candidate):
            raise UnresolvableTypeError(key, "not a class and no binding is registered")
        if is_value_type(candidate):
            raise UnresolvableTypeError(key, "value types are not built automatically")
        if issubclass(candidate, type):
            raise UnresolvableTypeError(key, "metaclasses are not built automatically")
        if is_protocol(candidate):
            raise UnresolvableTypeError(key, "protocol with no binding")
        if inspect.isabstract(candidate):
            raise UnresolvableTypeError(key, "abstract class with no binding")

    def _describe(self, key: TypeKey) -> tuple[ParameterInfo, ...]:
        init_func = self._constructor_function(key.value)
        if init_func is None:
            return ()

        try:
            sig = inspect.signature(init_func)
        except (TypeError, ValueError) as e:
            raise UnresolvableTypeError(key, f"constructor signature unavailable ({e})") from e

        try:
            hints = get_type_hints(init_func, include_extras=True)
        except (TypeError, NameError) as e:
            raise UnresolvableTypeError(key, f"cannot evaluate constructor hints ({e})") from e

        params: list[ParameterInfo] = []
        for index, (name, param) in enumerate(sig.parameters.items()):
            # __init__ receives self, __new__ receives the class (``_cls`` on named tuples)
            if index == 0:
                continue
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            params.append(
                ParameterInfo(
                    name=name,
                    key=TypeKey.from_value(hints[name]) if name in hints else None,
                    has_default=param.default is not _NO_DEFAULT,
                    default=param.default,
                    positional_only=param.kind is param.POSITIONAL_ONLY,
                ),
            )
        return tuple(params)

    @staticmethod
    def _constructor_function(cls: type[Any]) -> Any:
        """Return the function whose parameters the class call forwards, if any.

        ``__init__`` wins when the class defines one; otherwise a custom
        ``__new__`` (as on ``NamedTuple`` types) is used.
        """
        init_func = getattr(cls, "__init__", None)
        if init_func is not None and init_func is not object.__init__:
            return init_func
        new_func = getattr(cls, "__new__", None)
        if new_func is not None and new_func is not object.__new__:
            return new_func
        return None
