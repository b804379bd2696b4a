"""Tests for thread safety of Session."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from bindwire.exceptions import CyclicDependencyError
from bindwire.registry import BindingRegistry
from bindwire.type_key import Tag, TypeKey


class Pause:
    def __init__(self) -> None:
        time.sleep(0.3)


class Alpha:
    def __init__(self, pause: Pause, beta: "Beta") -> None:
        self.beta = beta


class Beta:
    def __init__(self, pause: Pause, alpha: Alpha) -> None:
        self.alpha = alpha


class Counter:
    def __init__(self) -> None:
        self.value = 0
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self.value += 1


class TestConcurrentSingletons:
    def test_concurrent_resolution_builds_once(self, registry: BindingRegistry) -> None:
        """Concurrent first requests share one instance built exactly once."""
        constructions = Counter()

        class SlowService:
            def __init__(self) -> None:
                time.sleep(0.02)
                constructions.increment()

        registry.bind(SlowService).to_singleton()
        session = registry.new_session()
        barrier = threading.Barrier(10)
        results: list[SlowService] = []
        errors: list[Exception] = []

        def resolve_service() -> None:
            try:
                barrier.wait()
                results.append(session.resolve(SlowService))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=resolve_service) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert len(results) == 10
        assert all(r is results[0] for r in results)
        assert constructions.value == 1

    def test_listener_fires_once_under_contention(self, registry: BindingRegistry) -> None:
        events = Counter()

        class Shared:
            def __init__(self) -> None:
                time.sleep(0.01)

        registry.bind(Shared).to_singleton()
        registry.add_listener(lambda key, instance: events.increment())
        session = registry.new_session()

        with ThreadPoolExecutor(max_workers=8) as executor:
            instances = list(executor.map(lambda _: session.resolve(Shared), range(32)))

        assert len({id(i) for i in instances}) == 1
        assert events.value == 1

    def test_different_source_keys_get_different_instances(
        self,
        registry: BindingRegistry,
    ) -> None:
        class Pool:
            pass

        keys = [TypeKey(Pool, Tag(name)) for name in ("read", "write", "admin")]
        for key in keys:
            registry.bind(key).to_singleton_of(Pool)
        session = registry.new_session()

        with ThreadPoolExecutor(max_workers=6) as executor:
            results = list(executor.map(session.resolve, keys * 10))

        by_key = {key: {id(r) for r, k in zip(results, keys * 10) if k == key} for key in keys}
        assert all(len(ids) == 1 for ids in by_key.values())
        assert len(set().union(*by_key.values())) == 3

    def test_building_one_singleton_does_not_block_another(
        self,
        registry: BindingRegistry,
    ) -> None:
        """A slow singleton build does not hold up requests for other keys."""
        other_built = threading.Event()

        class Waiting:
            def __init__(self) -> None:
                self.saw_other = other_built.wait(timeout=5)

        class Other:
            def __init__(self) -> None:
                other_built.set()

        registry.bind(Waiting).to_singleton()
        registry.bind(Other).to_singleton()
        session = registry.new_session()

        with ThreadPoolExecutor(max_workers=2) as executor:
            waiting = executor.submit(session.resolve, Waiting)
            time.sleep(0.01)
            other = executor.submit(session.resolve, Other)

            assert isinstance(other.result(timeout=5), Other)
            assert waiting.result(timeout=5).saw_other is True


class TestConcurrentTransient:
    def test_concurrent_transient_resolution_different_instances(self) -> None:
        """Concurrent default construction creates different instances."""

        class Plain:
            pass

        session = BindingRegistry().new_session()

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda _: session.resolve(Plain), range(20)))

        assert len({id(r) for r in results}) == 20


class TestCrossThreadCycles:
    def test_singleton_cycle_entered_from_both_ends_fails_instead_of_hanging(
        self,
        registry: BindingRegistry,
    ) -> None:
        """Two threads each building one side of a cycle get errors, not a deadlock."""
        registry.bind(Alpha).to_singleton()
        registry.bind(Beta).to_singleton()
        session = registry.new_session()
        errors: list[Exception] = []

        def resolve(key: type) -> None:
            try:
                session.resolve(key)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=resolve, args=(key,)) for key in (Alpha, Beta)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads)
        assert len(errors) == 2
        assert all(isinstance(e, CyclicDependencyError) for e in errors)
        assert not session.is_cached(Alpha)
        assert not session.is_cached(Beta)

    def test_waiting_on_unrelated_build_still_blocks(self, registry: BindingRegistry) -> None:
        """A thread waiting for another thread's build gets the shared instance."""
        registry.bind(Pause).to_singleton()
        session = registry.new_session()

        with ThreadPoolExecutor(max_workers=2) as executor:
            first = executor.submit(session.resolve, Pause)
            time.sleep(0.05)
            second = executor.submit(session.resolve, Pause)

            assert first.result(timeout=5) is second.result(timeout=5)
