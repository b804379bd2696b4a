"""Recover the session that owns an already constructed object.

Lookup tries three strategies in order:

1. a zero-argument method or property annotated to return a ``Session``;
2. a constructor parameter or class field annotated as a ``Session``, read
   back as the attribute of the same name;
3. the embedded ``__bindwire_session__`` accessor (see ``SessionHolder``).

Nothing is cached and the located session is not owned by the caller.
"""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable
from typing import (
    Any,
    Generic,
    TypeAlias,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    overload,
)

from bindwire.exceptions import MissingSessionError
from bindwire.holder import EMBEDDED_SESSION_ACCESSOR
from bindwire.introspection import is_runtime_class
from bindwire.session import Session

T = TypeVar("T")

logger = logging.getLogger(__name__)

SessionAccess: TypeAlias = Callable[[Any], Any]
"""Read a candidate session from an instance."""


def _returns_session(annotation: Any) -> bool:
    if get_origin(annotation) in (Union, types.UnionType):
        return any(_returns_session(arg) for arg in get_args(annotation))
    return is_runtime_class(annotation) and issubclass(annotation, Session)


def _safe_hints(obj: Any) -> dict[str, Any]:
    try:
        return get_type_hints(obj)
    except (TypeError, NameError, AttributeError) as e:
        logger.debug(
            "Cannot evaluate type hints of %s, skipping it in session lookup: %s",
            getattr(obj, "__qualname__", obj),
            e,
        )
        return {}


def _method_accessors(cls: type[Any]) -> list[SessionAccess]:
    accessors: list[SessionAccess] = []
    seen: set[str] = set()
    for klass in cls.__mro__:
        for name, member in vars(klass).items():
            if name in seen or name.startswith("__"):
                continue
            seen.add(name)

            if isinstance(member, property) and member.fget is not None:
                if _returns_session(_safe_hints(member.fget).get("return")):
                    accessors.append(lambda obj, _name=name: getattr(obj, _name))
                continue

            if not inspect.isfunction(member):
                continue
            if _returns_session(_safe_hints(member).get("return")) and _takes_no_arguments(member):
                accessors.append(lambda obj, _name=name: getattr(obj, _name)())
    return accessors


def _takes_no_arguments(func: Callable[..., Any]) -> bool:
    try:
        params = list(inspect.signature(func).parameters.values())[1:]
    except (TypeError, ValueError):
        return False
    return all(
        p.default is not p.empty or p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD) for p in params
    )


def _field_accessors(cls: type[Any]) -> list[SessionAccess]:
    names: list[str] = [
        name for name, hint in _safe_hints(cls).items() if _returns_session(hint)
    ]
    init = getattr(cls, "__init__", None)
    if init is not None and init is not object.__init__:
        names.extend(
            name
            for name, hint in _safe_hints(init).items()
            if name != "return" and name not in names and _returns_session(hint)
        )

    accessors: list[SessionAccess] = []
    for name in names:
        accessors.append(lambda obj, _name=name: getattr(obj, _name))
        accessors.append(lambda obj, _name=f"_{name}": getattr(obj, _name))
    return accessors


def _embedded_accessors(cls: type[Any]) -> list[SessionAccess]:
    if callable(getattr(cls, EMBEDDED_SESSION_ACCESSOR, None)):
        return [lambda obj: getattr(obj, EMBEDDED_SESSION_ACCESSOR)()]
    return []


def session_accessors(cls: type[Any]) -> list[SessionAccess]:
    """Return every candidate session accessor for ``cls`` in lookup order."""
    logger.debug("Find session for %s", cls.__qualname__)
    return [*_method_accessors(cls), *_field_accessors(cls), *_embedded_accessors(cls)]


def find_session_access(cls: type[Any]) -> SessionAccess | None:
    """Return the first accessor that could yield a session for ``cls``."""
    accessors = session_accessors(cls)
    return accessors[0] if accessors else None


def get_session(obj: Any) -> Session | None:
    """Return the session reachable from ``obj``, or ``None``."""
    if obj is None:
        msg = "Cannot look up the session of None."
        raise ValueError(msg)

    for access in session_accessors(type(obj)):
        try:
            candidate = access(obj)
        except AttributeError:
            continue
        if isinstance(candidate, Session):
            return candidate
    return None


def find_session(obj: Any) -> Session:
    """Return the session reachable from ``obj``.

    Raises:
        MissingSessionError: No strategy produced a session.

    """
    session = get_session(obj)
    if session is None:
        logger.error("No bindwire Session is found in the scope: %s", type(obj).__qualname__)
        raise MissingSessionError(type(obj))
    return session


class Weave(Generic[T]):
    """Descriptor resolving a dependency from the owner's session on first access.

    The resolved value is stored on the instance, so later reads do not touch
    the session again. Instances without ``__dict__`` resolve on every read.
    """

    def __init__(self, key: Any) -> None:
        self._key = key
        self._name: str | None = None

    def __set_name__(self, owner: type[Any], name: str) -> None:
        self._name = name

    @overload
    def __get__(self, obj: None, objtype: type[Any] | None = None) -> Weave[T]: ...

    @overload
    def __get__(self, obj: object, objtype: type[Any] | None = None) -> T: ...

    def __get__(self, obj: object | None, objtype: type[Any] | None = None) -> Any:
        if obj is None:
            return self

        value = find_session(obj).resolve(self._key)
        instance_dict = getattr(obj, "__dict__", None)
        if self._name is not None and instance_dict is not None:
            instance_dict[self._name] = value
        return value

    def __repr__(self) -> str:
        return f"weave({self._key!r})"


def weave(key: type[T] | Any) -> Weave[T]:
    """Declare a class attribute resolved lazily from the instance's session.

    Examples:
        .. code-block:: python

            class ReportJob(SessionHolder):
                storage = weave(Storage)

    """
    return Weave(key)
