from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, TypeVar, overload

from bindwire.bindings import (
    Binding,
    ClassBinding,
    InstanceBinding,
    ProviderBinding,
    SingletonBinding,
    finalize_bindings,
)
from bindwire.exceptions import CyclicDependencyError, UnresolvableTypeError
from bindwire.holder import SessionHolder
from bindwire.introspection import (
    USE_DEFAULT,
    ParameterInfo,
    SignatureIntrospector,
    TypeIntrospector,
    is_runtime_class,
    is_value_type,
)
from bindwire.listeners import SessionListener
from bindwire.type_key import TypeKey

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Session:
    """Resolve types against a finalized, immutable binding table.

    A session owns the singletons it builds. Every other result is built
    fresh on each request and owned by the caller. ``resolve`` is safe to call
    from several threads: each singleton key is built at most once, and
    requests for different keys do not wait on each other.

    Sessions are normally created with ``BindingRegistry.new_session``.
    """

    __slots__ = (
        "__weakref__",
        "_building",
        "_introspector",
        "_listeners",
        "_singleton_locks",
        "_singleton_locks_lock",
        "_singletons",
        "_table",
        "_wait_graph_lock",
        "_waiting",
    )

    def __init__(
        self,
        bindings: Iterable[Binding] = (),
        listeners: Iterable[SessionListener] = (),
        *,
        introspector: TypeIntrospector | None = None,
    ) -> None:
        self._table: Mapping[TypeKey, Binding] = MappingProxyType(
            finalize_bindings(list(bindings)),
        )
        self._listeners: tuple[SessionListener, ...] = tuple(listeners)
        self._introspector: TypeIntrospector = introspector or SignatureIntrospector()

        self._singletons: dict[TypeKey, Any] = {}
        # Per-key locks so that concurrent first requests build a singleton once
        self._singleton_locks: dict[TypeKey, threading.RLock] = {}
        self._singleton_locks_lock = threading.Lock()
        # Singleton key -> ident of the thread currently building it
        self._building: dict[TypeKey, int] = {}
        # Thread ident -> singleton key it is blocked on
        self._waiting: dict[int, TypeKey] = {}
        self._wait_graph_lock = threading.Lock()

        logger.debug(
            "Created session with %d bindings and %d listeners",
            len(self._table),
            len(self._listeners),
        )

    @property
    def bindings(self) -> Mapping[TypeKey, Binding]:
        """The finalized binding table, one binding per key, in table order."""
        return self._table

    @property
    def listeners(self) -> tuple[SessionListener, ...]:
        return self._listeners

    def __contains__(self, key: Any) -> bool:
        return TypeKey.from_value(key) in self._table

    def is_cached(self, key: Any) -> bool:
        """Return true when a singleton for ``key`` has already been built."""
        return TypeKey.from_value(key) in self._singletons

    def build_eager_singletons(self) -> None:
        """Build every eager singleton in table order.

        Already built singletons are left untouched, so calling this twice is
        harmless.
        """
        for binding in self._table.values():
            if isinstance(binding, SingletonBinding) and binding.is_eager:
                logger.debug("Building eager singleton %s", binding.from_key)
                self.resolve(binding.from_key)

    @overload
    def resolve(self, key: type[T]) -> T: ...

    @overload
    def resolve(self, key: Any) -> Any: ...

    def resolve(self, key: Any) -> Any:
        """Resolve ``key`` into an instance.

        Args:
            key: A type, an ``Annotated[T, Tag(...)]`` alias or a ``TypeKey``.

        Raises:
            CyclicDependencyError: ``key`` depends on itself.
            UnresolvableTypeError: ``key`` has no binding and cannot be built.

        """
        return self._resolve(TypeKey.from_value(key), [])

    def _resolve(self, key: TypeKey, stack: list[TypeKey]) -> Any:
        if key in stack:
            raise CyclicDependencyError(key, stack)
        stack.append(key)

        try:
            binding = self._table.get(key)
            if binding is None:
                return self._construct(key, stack)
            if isinstance(binding, InstanceBinding):
                return binding.instance
            if isinstance(binding, ProviderBinding):
                return binding.provider(key)
            if isinstance(binding, ClassBinding):
                return self._resolve(binding.to_key, stack)
            return self._resolve_singleton(binding, stack)
        finally:
            stack.pop()

    def _resolve_singleton(self, binding: SingletonBinding, stack: list[TypeKey]) -> Any:
        key = binding.from_key
        if key in self._singletons:
            return self._singletons[key]

        lock = self._get_singleton_lock(key)
        self._acquire_singleton_lock(key, lock, stack)
        try:
            # Double-check: another thread may have finished the build meanwhile
            if key in self._singletons:
                return self._singletons[key]

            ident = threading.get_ident()
            # Same thread re-entering through a nested resolve() call
            if self._building.get(key) == ident:
                raise CyclicDependencyError(key, stack[:-1])

            with self._wait_graph_lock:
                self._building[key] = ident
            try:
                if binding.to_key == key:
                    instance = self._construct(key, stack)
                else:
                    instance = self._resolve(binding.to_key, stack)
            finally:
                with self._wait_graph_lock:
                    del self._building[key]

            self._singletons[key] = instance
            return instance
        finally:
            lock.release()

    def _acquire_singleton_lock(
        self,
        key: TypeKey,
        lock: threading.RLock,
        stack: list[TypeKey],
    ) -> None:
        """Acquire ``lock``, failing instead of blocking when the wait would close a cycle.

        A thread waiting on a key built by another thread is recorded in
        ``_waiting``. Before blocking, the chain builder -> awaited key ->
        builder is followed; reaching the current thread means every thread on
        the chain waits for another one on it.
        """
        if lock.acquire(blocking=False):
            return

        ident = threading.get_ident()
        with self._wait_graph_lock:
            if self._wait_reaches(key, ident):
                raise CyclicDependencyError(key, stack[:-1])
            self._waiting[ident] = key
        try:
            lock.acquire()
        finally:
            with self._wait_graph_lock:
                del self._waiting[ident]

    def _wait_reaches(self, key: TypeKey, ident: int) -> bool:
        seen: set[int] = set()
        owner = self._building.get(key)
        while owner is not None and owner not in seen:
            if owner == ident:
                return True
            seen.add(owner)
            awaited = self._waiting.get(owner)
            if awaited is None:
                return False
            owner = self._building.get(awaited)
        return False

    def _construct(self, key: TypeKey, stack: list[TypeKey]) -> Any:
        if self._is_session_key(key):
            return self

        params = self._introspector.describe_constructor(key)
        args = [self._resolve_parameter(key, param, stack) for param in params]
        instance = self._introspector.construct(key, args)

        if isinstance(instance, SessionHolder):
            instance.attach_session(self)
        for listener in self._listeners:
            listener.after_injection(key, instance)
        return instance

    def _resolve_parameter(
        self,
        owner: TypeKey,
        param: ParameterInfo,
        stack: list[TypeKey],
    ) -> Any:
        if param.key is None:
            if param.has_default:
                return USE_DEFAULT
            raise UnresolvableTypeError(owner, f"parameter '{param.name}' is not annotated")

        try:
            return self._resolve(param.key, stack)
        except UnresolvableTypeError as e:
            # Failures deeper in the graph are not the parameter's own
            if e.key != param.key:
                raise
            if param.has_default:
                logger.debug("Using default of %s.%s: %s", owner, param.name, e.reason)
                return USE_DEFAULT
            if is_runtime_class(param.key.value) and is_value_type(param.key.value):
                msg = f"parameter '{param.name}' needs a bound {param.key}"
                raise UnresolvableTypeError(owner, msg) from e
            raise

    def _is_session_key(self, key: TypeKey) -> bool:
        return (
            key.tag is None
            and is_runtime_class(key.value)
            and issubclass(key.value, Session)
            and isinstance(self, key.value)
        )

    def _get_singleton_lock(self, key: TypeKey) -> threading.RLock:
        """Get or create the lock guarding the first build of a singleton key.

        Uses double-checked locking to minimize lock contention.
        """
        lock = self._singleton_locks.get(key)
        if lock is None:
            with self._singleton_locks_lock:
                lock = self._singleton_locks.get(key)
                if lock is None:
                    lock = threading.RLock()
                    self._singleton_locks[key] = lock
        return lock

    def __repr__(self) -> str:
        return f"Session(bindings={len(self._table)}, singletons={len(self._singletons)})"
