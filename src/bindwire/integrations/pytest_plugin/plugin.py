from __future__ import annotations

from typing import Any

import pytest

from bindwire.registry import BindingRegistry
from bindwire.session import Session


@pytest.fixture()
def bindwire_registry() -> BindingRegistry:
    """Create a per-test binding registry.

    The fixture is function-scoped, so bindings are isolated between tests
    unless users override fixture scope explicitly.

    Returns:
        A new, empty ``BindingRegistry``.

    """
    return BindingRegistry()


@pytest.fixture()
def bindwire_session(bindwire_registry: BindingRegistry) -> Session:
    """Finalize ``bindwire_registry`` into a session.

    Tests add bindings through ``bindwire_registry`` (directly or by overriding
    that fixture) before requesting this fixture; bindings added afterwards do
    not affect the returned session.

    Returns:
        A session built from the per-test registry.

    """
    return bindwire_registry.new_session()


@pytest.fixture()
def bindwire_resolve(bindwire_session: Session) -> Any:
    """Return ``bindwire_session.resolve`` for terse test bodies."""
    return bindwire_session.resolve
