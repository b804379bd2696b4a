"""Shared pytest fixtures for bindwire tests."""

import pytest

from bindwire.registry import BindingRegistry
from tests.helpers import RecordingListener


@pytest.fixture()
def registry() -> BindingRegistry:
    """Empty binding registry."""
    return BindingRegistry()


@pytest.fixture()
def listener() -> RecordingListener:
    """Recording listener, not yet registered anywhere."""
    return RecordingListener()
