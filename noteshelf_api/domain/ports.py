from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SnapshotStore(Protocol):
    def load(self) -> dict[str, Any]:
        ...

    def save(self, snapshot: dict[str, Any]) -> None:
        ...
