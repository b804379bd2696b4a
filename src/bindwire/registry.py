from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from bindwire.bindings import (
    Binding,
    ClassBinding,
    InstanceBinding,
    Provider,
    ProviderBinding,
    SingletonBinding,
)
from bindwire.exceptions import InvalidBindingError
from bindwire.listeners import CallbackListener, SessionListener
from bindwire.type_key import TypeKey

if TYPE_CHECKING:
    from bindwire.introspection import TypeIntrospector
    from bindwire.session import Session

logger = logging.getLogger(__name__)


class BindingRegistry:
    """Collect bindings and listeners, then finalize them into a ``Session``.

    The registry is append-only: binding the same type several times keeps
    every declaration, and ``new_session`` keeps only the last one per type.

    Examples:
        .. code-block:: python

            registry = BindingRegistry()
            registry.bind(Logger).to_singleton()
            registry.bind(Service).to(ServiceImpl)
            session = registry.new_session()
            service = session.resolve(Service)

    """

    def __init__(self) -> None:
        self._bindings: list[Binding] = []
        self._listeners: list[SessionListener] = []

    @property
    def bindings(self) -> tuple[Binding, ...]:
        """All bindings in registration order, overridden ones included."""
        return tuple(self._bindings)

    @property
    def listeners(self) -> tuple[SessionListener, ...]:
        return tuple(self._listeners)

    def bind(self, key: Any) -> BindingBuilder:
        """Start a binding declaration for ``key``.

        Args:
            key: A type, an ``Annotated[T, Tag(...)]`` alias or a ``TypeKey``.

        """
        if key is None:
            msg = "Cannot bind None."
            raise InvalidBindingError(msg)
        from_key = TypeKey.from_value(key)
        logger.debug("Bind %s", from_key)
        return BindingBuilder(self, from_key)

    def add_binding(self, binding: Binding) -> Self:
        logger.debug("Add binding: %s", binding)
        self._bindings.append(binding)
        return self

    def add_listener(
        self,
        listener: SessionListener | Callable[[TypeKey, Any], None],
    ) -> Self:
        """Register a listener notified after every fresh construction.

        Plain callables taking ``(key, instance)`` are accepted as well.
        """
        if not isinstance(listener, SessionListener):
            if not callable(listener):
                msg = f"Listener must define after_injection or be callable, got {listener!r}."
                raise InvalidBindingError(msg)
            listener = CallbackListener(listener)
        self._listeners.append(listener)
        return self

    def new_session(self, *, introspector: TypeIntrospector | None = None) -> Session:
        """Finalize the registry into a new session.

        Later bindings for the same type override earlier ones. Eager
        singletons are built before this method returns, in table order;
        failures while building them propagate from here.

        Args:
            introspector: Constructor introspection strategy. Defaults to
                ``SignatureIntrospector``.

        """
        from bindwire.session import Session

        session = Session(self._bindings, self._listeners, introspector=introspector)
        session.build_eager_singletons()
        return session


class BindingBuilder:
    """Fluent builder completing one ``bind(...)`` declaration."""

    __slots__ = ("_from_key", "_registry")

    def __init__(self, registry: BindingRegistry, from_key: TypeKey) -> None:
        self._registry = registry
        self._from_key = from_key

    @property
    def key(self) -> TypeKey:
        return self._from_key

    def to(self, target: Any) -> BindingRegistry:
        """Satisfy requests by building ``target`` on every request."""
        to_key = TypeKey.from_value(target)
        if self._is_self_binding(to_key):
            return self._registry
        return self._registry.add_binding(ClassBinding(self._from_key, to_key))

    def to_instance(self, instance: Any) -> BindingRegistry:
        """Satisfy requests with ``instance`` itself."""
        return self._registry.add_binding(InstanceBinding(self._from_key, instance))

    def to_provider(self, provider: Provider) -> BindingRegistry:
        """Satisfy requests by calling ``provider(key)``.

        The provider's own parameters are not injected.
        """
        return self._registry.add_binding(ProviderBinding(self._from_key, provider))

    def to_singleton(self) -> BindingRegistry:
        """Share one lazily built instance of the bound type itself."""
        return self._registry.add_binding(SingletonBinding(self._from_key, self._from_key))

    def to_eager_singleton(self) -> BindingRegistry:
        """Share one instance of the bound type, built at session creation."""
        return self._registry.add_binding(
            SingletonBinding(self._from_key, self._from_key, is_eager=True),
        )

    def to_singleton_of(self, target: Any) -> BindingRegistry:
        """Share one lazily built instance of ``target``."""
        return self._add_singleton(target, is_eager=False)

    def to_eager_singleton_of(self, target: Any) -> BindingRegistry:
        """Share one instance of ``target``, built at session creation."""
        return self._add_singleton(target, is_eager=True)

    def _add_singleton(self, target: Any, *, is_eager: bool) -> BindingRegistry:
        to_key = TypeKey.from_value(target)
        if self._is_self_binding(to_key):
            return self._registry
        return self._registry.add_binding(
            SingletonBinding(self._from_key, to_key, is_eager=is_eager),
        )

    def _is_self_binding(self, to_key: TypeKey) -> bool:
        if to_key != self._from_key:
            return False
        logger.warning("Binding to the same type will be ignored: %s", self._from_key)
        return True

    def __repr__(self) -> str:
        return f"BindingBuilder({self._from_key})"
