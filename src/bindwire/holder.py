from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bindwire.session import Session

EMBEDDED_SESSION_ACCESSOR = "__bindwire_session__"
"""Name of the hidden zero-argument method returning an object's session."""


class SessionHolder:
    """Mixin remembering the session that built an instance.

    Sessions attach themselves to every ``SessionHolder`` they construct. The
    reference is weak: holding an instance does not keep its session alive.
    Discovery reads it through the ``__bindwire_session__`` accessor.
    """

    # Annotation must stay evaluable at runtime for discovery's type hint scan
    _bindwire_session_ref: weakref.ref[Any] | None = None

    def __bindwire_session__(self) -> Session | None:
        ref = self._bindwire_session_ref
        return ref() if ref is not None else None

    def attach_session(self, session: Session) -> None:
        self._bindwire_session_ref = weakref.ref(session)
