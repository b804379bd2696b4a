"""Pytest plugin exposing bindwire registry and session fixtures."""

from bindwire.integrations.pytest_plugin.plugin import (
    bindwire_registry,
    bindwire_resolve,
    bindwire_session,
)

__all__ = ["bindwire_registry", "bindwire_resolve", "bindwire_session"]
