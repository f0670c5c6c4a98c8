"""In-memory task registry.

Task state is deliberately process-local: it is lost on restart.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from media_orchestrator.errors import (
    DuplicateIdError,
    IllegalTransitionError,
    OrchestratorError,
    TaskNotFoundError,
)
from media_orchestrator.scheduling.clock import Clock, SystemClock
from media_orchestrator.storage.models import (
    ACTIVE_STATUSES,
    RESULT_MODELS,
    TaskBase,
    TaskError,
    TaskKind,
    TaskStatus,
)

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "kind", "created_at", "request"})
_MUTABLE_FIELDS = frozenset({"status", "result", "error", "external_job_ref", "completed_at"})


class InMemoryTaskRegistry:
    """Insertion-ordered, lock-guarded store of immutable task snapshots."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._tasks: dict[str, TaskBase] = {}
        self._lock = threading.Lock()

    def add(self, task: TaskBase) -> TaskBase:
        with self._lock:
            if task.id in self._tasks:
                raise DuplicateIdError(
                    f"Task {task.id} already exists", details={"task_id": task.id}
                )
            self._tasks[task.id] = task
        return task

    def update(self, task_id: str, **fields: Any) -> TaskBase:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)

            _reject_immutable_changes(current, fields)
            if current.status.is_terminal:
                # Terminal records never change again.
                logger.debug(
                    "registry_update event=ignored_terminal task_id=%s status=%s fields=%s",
                    task_id,
                    current.status.value,
                    sorted(fields),
                )
                return current

            updated = current.model_copy(update=self._merge(current, fields))
            self._tasks[task_id] = updated
            return updated

    def remove(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)

    def get(self, task_id: str) -> TaskBase | None:
        with self._lock:
            return self._tasks.get(task_id)

    def list_all(self) -> list[TaskBase]:
        with self._lock:
            return list(self._tasks.values())

    def list_by_kind(self, kind: TaskKind) -> list[TaskBase]:
        with self._lock:
            return [task for task in self._tasks.values() if task.kind == kind]

    def list_active(self, kind: TaskKind | None = None) -> list[TaskBase]:
        with self._lock:
            return [
                task
                for task in self._tasks.values()
                if task.status in ACTIVE_STATUSES and (kind is None or task.kind == kind)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def _merge(self, current: TaskBase, fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - _MUTABLE_FIELDS - _IMMUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)}")

        kind = TaskKind(current.kind)
        status = TaskStatus(fields.get("status", current.status))
        result = fields.get("result", current.result)
        error = fields.get("error", current.error)
        job_ref = fields.get("external_job_ref", current.external_job_ref)
        if isinstance(error, OrchestratorError):
            error = TaskError.from_exception(error)

        if current.status is TaskStatus.PROCESSING and status is TaskStatus.PENDING:
            raise IllegalTransitionError(f"Task {current.id} cannot move back to pending")
        if result is not None and status is not TaskStatus.COMPLETED:
            raise IllegalTransitionError("result can only be set together with status=completed")
        if error is not None and status is not TaskStatus.FAILED:
            raise IllegalTransitionError("error can only be set together with status=failed")
        if status is TaskStatus.COMPLETED and result is None:
            raise IllegalTransitionError("status=completed requires a result")
        if status is TaskStatus.FAILED and error is None:
            raise IllegalTransitionError("status=failed requires an error")
        if result is not None and not isinstance(result, RESULT_MODELS[kind]):
            raise IllegalTransitionError(
                f"{type(result).__name__} is not a valid result for {kind.value}"
            )
        if job_ref is not None and not kind.is_asynchronous:
            raise IllegalTransitionError(f"{kind.value} tasks do not track external jobs")

        completed_at = current.completed_at
        if status.is_terminal:
            completed_at = fields.get("completed_at") or self.clock.now()
            job_ref = None
        elif fields.get("completed_at") is not None:
            raise IllegalTransitionError("completed_at is only set by a terminal transition")

        if job_ref is not None and status is not TaskStatus.PROCESSING:
            raise IllegalTransitionError(
                f"external_job_ref is only set while task {current.id} is processing"
            )
        if status is TaskStatus.PROCESSING and kind.is_asynchronous and not job_ref:
            raise IllegalTransitionError(
                f"processing {kind.value} task {current.id} requires an external_job_ref"
            )

        return {
            "status": status,
            "result": result,
            "error": error,
            "external_job_ref": job_ref,
            "completed_at": completed_at,
        }


def _reject_immutable_changes(current: TaskBase, fields: dict[str, Any]) -> None:
    for name in _IMMUTABLE_FIELDS & set(fields):
        if fields[name] != getattr(current, name):
            raise IllegalTransitionError(
                f"Task field '{name}' is immutable", details={"task_id": current.id}
            )
