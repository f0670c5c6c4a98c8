"""Caller-facing task service.

Owns one registry, one scheduler, the poller, the sweeper and the per-kind
adapters. ``start()`` and ``shutdown()`` bound the lifetime of every ticker and
worker thread it creates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from media_orchestrator.adapters.base import SubmissionAdapter
from media_orchestrator.adapters.registry import build_adapters
from media_orchestrator.config.settings import ServiceConfig, Settings, get_settings
from media_orchestrator.errors import TaskNotFoundError
from media_orchestrator.polling.poller import Poller
from media_orchestrator.polling.sweeper import CleanupSweeper
from media_orchestrator.scheduling.ticker import Scheduler, ThreadScheduler
from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.memory import InMemoryTaskRegistry
from media_orchestrator.storage.models import TaskBase, TaskKind, build_task, parse_request

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        registry: TaskRegistry | None = None,
        scheduler: Scheduler | None = None,
        clients: Mapping[TaskKind, Any] | None = None,
        worker_pool: Executor | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.scheduler = scheduler or ThreadScheduler()
        self.registry = registry or InMemoryTaskRegistry(clock=self.scheduler.clock)
        if self.registry.clock is not self.scheduler.clock:
            # completed_at stamps and the sweeper cutoff must come from one clock.
            raise ValueError("registry and scheduler must share the same clock")
        self.poller = Poller(self.registry, self.scheduler)
        self.sweeper = CleanupSweeper(
            self.registry,
            self.scheduler,
            retention_s=self.settings.retention_s,
            interval_s=self.settings.cleanup_interval_s,
        )
        self.adapters: dict[TaskKind, SubmissionAdapter] = build_adapters(
            settings=self.settings,
            registry=self.registry,
            poller=self.poller,
            clients=clients,
        )
        self._worker_pool = worker_pool
        self._id_factory = id_factory or (lambda: str(uuid4()))

    def start(self) -> None:
        self.sweeper.start()
        logger.info("service event=started kinds=%s", sorted(k.value for k in self.adapters))

    def shutdown(self) -> None:
        self.sweeper.stop()
        self.poller.shutdown()
        self.scheduler.shutdown()
        if self._worker_pool is not None:
            self._worker_pool.shutdown(wait=False, cancel_futures=True)
        logger.info("service event=stopped")

    def submit(self, kind: TaskKind | str, params: Mapping[str, Any] | BaseModel) -> str:
        """Create a task and start its external operation.

        Raises ``ConfigurationError`` (and creates nothing) when the service
        behind ``kind`` is not configured, and ``pydantic.ValidationError`` when
        ``params`` do not fit the kind's request model. Every later failure is
        recorded on the task.
        """
        task_kind = TaskKind(kind)
        adapter = self.adapters[task_kind]
        adapter.ensure_configured()
        request = parse_request(task_kind, params)

        task = build_task(
            task_kind,
            task_id=self._id_factory(),
            request=request,
            created_at=self.scheduler.clock.now(),
        )
        self.registry.add(task)
        logger.info("task_submit event=created task_id=%s kind=%s", task.id, task_kind.value)

        self._dispatch(adapter, task.id, request)
        return task.id

    def get_task(self, task_id: str) -> TaskBase:
        task = self.registry.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self) -> list[TaskBase]:
        return self.registry.list_all()

    def list_active(self) -> list[TaskBase]:
        return self.registry.list_active()

    def list_by_kind(self, kind: TaskKind | str) -> list[TaskBase]:
        return self.registry.list_by_kind(TaskKind(kind))

    def remove(self, task_id: str) -> None:
        """Forget a task. Local polling stops; the external job is left running."""
        self.registry.remove(task_id)
        logger.info("task_remove event=removed task_id=%s", task_id)

    def configuration_status(self) -> dict[str, dict[str, Any]]:
        status: dict[str, dict[str, Any]] = {}
        for kind, adapter in self.adapters.items():
            config = adapter.config
            status[kind.value] = {
                "endpoint": "set" if config.endpoint else "not set",
                "api_key": "set" if config.api_key else "not set",
                "api_version": config.api_version or None,
                "deployment": config.deployment or None,
                "client": adapter.client is not None,
                "configured": not adapter.missing_config(),
                "asynchronous": adapter.is_asynchronous,
            }
        return status

    def update_service_config(self, kind: TaskKind | str, **overrides: str | None) -> ServiceConfig:
        """Apply runtime overrides; empty values leave the current setting untouched."""
        adapter = self.adapters[TaskKind(kind)]
        adapter.config = adapter.config.merged(**overrides)
        logger.info(
            "service_config event=updated kind=%s fields=%s",
            adapter.kind.value,
            sorted(key for key, value in overrides.items() if value),
        )
        return adapter.config

    def _dispatch(self, adapter: SubmissionAdapter, task_id: str, request: BaseModel) -> None:
        if self._worker_pool is None:
            adapter.submit(task_id, request)
            return
        future = self._worker_pool.submit(adapter.submit, task_id, request)
        future.add_done_callback(_log_worker_failure(task_id))


def _log_worker_failure(task_id: str) -> Callable[[Future[None]], None]:
    def _log(future: Future[None]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "task_submit event=worker_error task_id=%s error=%s",
                task_id,
                exc,
                exc_info=exc,
            )

    return _log
