"""Task registry and models."""

from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.memory import InMemoryTaskRegistry
from media_orchestrator.storage.models import (
    Task,
    TaskBase,
    TaskError,
    TaskKind,
    TaskStatus,
)

__all__ = [
    "InMemoryTaskRegistry",
    "Task",
    "TaskBase",
    "TaskError",
    "TaskKind",
    "TaskRegistry",
    "TaskStatus",
]
