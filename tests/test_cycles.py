"""Tests for cyclic dependency detection."""

import pytest

from bindwire.exceptions import CyclicDependencyError
from bindwire.registry import BindingRegistry
from bindwire.session import Session
from bindwire.type_key import Tag, TypeKey


class Node:
    def __init__(self, parent: "Node") -> None:
        self.parent = parent


class Chicken:
    def __init__(self, egg: "Egg") -> None:
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken) -> None:
        self.chicken = chicken


class Left:
    pass


class Right:
    pass


class Leaf:
    pass


class Branch:
    def __init__(self, first: Leaf, second: Leaf) -> None:
        self.first = first
        self.second = second


class TestDirectCycles:
    def test_self_dependency(self) -> None:
        session = BindingRegistry().new_session()

        with pytest.raises(CyclicDependencyError) as exc_info:
            session.resolve(Node)

        assert exc_info.value.key == TypeKey(Node)
        assert exc_info.value.chain == (TypeKey(Node), TypeKey(Node))

    def test_two_class_cycle(self) -> None:
        session = BindingRegistry().new_session()

        with pytest.raises(CyclicDependencyError) as exc_info:
            session.resolve(Chicken)

        assert exc_info.value.chain == (TypeKey(Chicken), TypeKey(Egg), TypeKey(Chicken))
        assert "Chicken -> Egg -> Chicken" in str(exc_info.value)

    def test_cycle_through_class_bindings(self, registry: BindingRegistry) -> None:
        registry.bind(Left).to(Right)
        registry.bind(Right).to(Left)

        with pytest.raises(CyclicDependencyError) as exc_info:
            registry.new_session().resolve(Left)

        assert exc_info.value.chain == (TypeKey(Left), TypeKey(Right), TypeKey(Left))

    def test_long_cycle(self, registry: BindingRegistry) -> None:
        keys = [TypeKey(Leaf, Tag(index)) for index in range(10)]
        for index, key in enumerate(keys):
            registry.bind(key).to(keys[(index + 1) % len(keys)])

        with pytest.raises(CyclicDependencyError) as exc_info:
            registry.new_session().resolve(keys[0])

        assert exc_info.value.chain == (*keys, keys[0])


class TestSingletonCycles:
    def test_singleton_self_dependency(self, registry: BindingRegistry) -> None:
        registry.bind(Node).to_singleton()
        session = registry.new_session()

        with pytest.raises(CyclicDependencyError):
            session.resolve(Node)
        # Nothing is left half-built, so a retry fails the same way
        with pytest.raises(CyclicDependencyError):
            session.resolve(Node)
        assert not session.is_cached(Node)

    def test_reentrant_singleton_build(self, registry: BindingRegistry) -> None:
        def provide_egg(key: TypeKey) -> Egg:
            session.resolve(Chicken)
            return Egg.__new__(Egg)

        registry.bind(Chicken).to_singleton()
        registry.bind(Egg).to_provider(provide_egg)
        session = registry.new_session()

        with pytest.raises(CyclicDependencyError) as exc_info:
            session.resolve(Chicken)

        assert exc_info.value.key == TypeKey(Chicken)

    def test_eager_singleton_cycle_fails_session_creation(self, registry: BindingRegistry) -> None:
        registry.bind(Chicken).to_eager_singleton()

        with pytest.raises(CyclicDependencyError):
            registry.new_session()


class TestNotCycles:
    def test_repeated_dependency_is_not_a_cycle(self) -> None:
        branch = BindingRegistry().new_session().resolve(Branch)

        assert branch.first is not branch.second

    def test_stack_is_per_call(self, registry: BindingRegistry) -> None:
        registry.bind(Leaf).to_singleton()
        session = registry.new_session()

        with pytest.raises(CyclicDependencyError):
            session.resolve(Chicken)

        assert isinstance(session.resolve(Branch), Branch)
        assert session.resolve(Session) is session
