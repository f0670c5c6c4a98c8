"""Registry interface for task state."""

from __future__ import annotations

from typing import Any, Protocol

from media_orchestrator.scheduling.clock import Clock
from media_orchestrator.storage.models import TaskBase, TaskKind


class TaskRegistry(Protocol):
    clock: Clock

    def add(self, task: TaskBase) -> TaskBase: ...

    def update(self, task_id: str, **fields: Any) -> TaskBase: ...

    def remove(self, task_id: str) -> None: ...

    def get(self, task_id: str) -> TaskBase | None: ...

    def list_all(self) -> list[TaskBase]: ...

    def list_by_kind(self, kind: TaskKind) -> list[TaskBase]: ...

    def list_active(self, kind: TaskKind | None = None) -> list[TaskBase]: ...

    def __len__(self) -> int: ...
