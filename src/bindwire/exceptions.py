from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bindwire.type_key import TypeKey


class BindwireError(Exception):
    """Represent a base class for all bindwire-specific failures.

    Catch this type when you want to handle any bindwire error path without
    matching each concrete exception class individually.
    """


class InvalidBindingError(BindwireError):
    """Signal a malformed binding declaration.

    Raised by ``BindingRegistry`` builder calls and by binding constructors
    when the bound key is missing or a provider is not callable.
    """


class CyclicDependencyError(BindwireError):
    """Signal that a type depends on itself within one resolution call.

    ``chain`` holds the keys being resolved at the point of detection, in
    resolution order, ending with the key that was requested again.

    Typical fixes include breaking the cycle with a provider binding, or
    deferring one side of the dependency with ``weave``.
    """

    def __init__(self, key: TypeKey, chain: Sequence[TypeKey]) -> None:
        self.key = key
        self.chain: tuple[TypeKey, ...] = (*chain, key)
        path = " -> ".join(str(item) for item in self.chain)
        super().__init__(f"Cyclic dependency detected for {key}: {path}")


class UnresolvableTypeError(BindwireError):
    """Signal that a key has no binding and no usable constructor.

    Raised for abstract classes, protocols and non-class keys that have no
    binding, and for constructor parameters that cannot be satisfied.
    """

    def __init__(self, key: TypeKey, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot resolve {key}: {reason}")


class MissingSessionError(BindwireError):
    """Signal that no owning session could be found for an object.

    Raised by ``find_session`` and by ``weave`` descriptors. Typical fixes
    include accepting a ``Session`` constructor parameter, exposing a method
    that returns it, or mixing in ``SessionHolder``.
    """

    def __init__(self, object_type: type[Any]) -> None:
        self.object_type = object_type
        name = getattr(object_type, "__qualname__", repr(object_type))
        super().__init__(f"No bindwire Session is found in the scope: {name}")


class ConfigError(BindwireError):
    """Signal a configuration loading or override failure."""
