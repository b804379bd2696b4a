from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, NamedTuple, get_args, get_origin

_ANNOTATED_MARKER_MIN_ARGS = 2


class Tag(NamedTuple):
    """Differentiate multiple bindings for the same base type.

    Attach ``Tag`` metadata to ``typing.Annotated`` so bindwire treats each
    annotated key as distinct at runtime.

    Examples:
        .. code-block:: python

            AppConfig: TypeAlias = Annotated[ServerConfig, Tag("app")]
            AdminConfig: TypeAlias = Annotated[ServerConfig, Tag("admin")]

    """

    value: Any


@dataclass(frozen=True, slots=True)
class TypeKey:
    """Identify a requested or bound type.

    A key is a type (or any hashable token) plus an optional ``Tag``.
    Equality and hashing cover both parts.
    """

    value: Any
    tag: Tag | None = None

    @classmethod
    def from_value(cls, value: Any) -> TypeKey:
        """Normalize a type, an annotated type or an existing key into a key.

        ``Annotated[T, Tag("x")]`` becomes ``TypeKey(T, Tag("x"))``; other
        ``Annotated`` metadata is ignored.
        """
        if isinstance(value, TypeKey):
            return value

        if get_origin(value) is Annotated:
            args = get_args(value)
            if len(args) >= _ANNOTATED_MARKER_MIN_ARGS:
                tags = [meta for meta in args[1:] if isinstance(meta, Tag)]
                inner = cls.from_value(args[0])
                if tags:
                    return cls(value=inner.value, tag=tags[-1])
                return inner

        return cls(value=value)

    @property
    def name(self) -> str:
        return getattr(self.value, "__qualname__", None) or repr(self.value)

    def __str__(self) -> str:
        if self.tag is None:
            return self.name
        return f"{self.name}@{self.tag.value}"
