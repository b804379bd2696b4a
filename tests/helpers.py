from typing import Any

from bindwire.type_key import TypeKey


class RecordingListener:
    """Listener keeping every notification in call order."""

    def __init__(self) -> None:
        self.events: list[tuple[TypeKey, Any]] = []

    def after_injection(self, key: TypeKey, instance: Any) -> None:
        self.events.append((key, instance))

    @property
    def types(self) -> list[Any]:
        return [key.value for key, _ in self.events]
