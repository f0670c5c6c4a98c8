"""Periodic eviction of completed tasks past the retention window."""

from __future__ import annotations

import logging
from datetime import timedelta

from media_orchestrator.scheduling.ticker import Scheduler, Ticker
from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.models import TaskStatus

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Removes completed tasks once ``retention_s`` has passed since completion.

    Failed tasks are kept until removed explicitly so they stay visible for
    diagnosis.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        scheduler: Scheduler,
        *,
        retention_s: float = 3600.0,
        interval_s: float = 600.0,
    ) -> None:
        self.registry = registry
        self.scheduler = scheduler
        self.retention_s = retention_s
        self.interval_s = interval_s
        self._ticker: Ticker | None = None

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.cancelled

    def start(self) -> None:
        if self.running:
            return
        self._ticker = self.scheduler.every(self.interval_s, self.sweep, name="cleanup-sweep")

    def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def sweep(self) -> list[str]:
        if len(self.registry) == 0:
            return []

        cutoff = self.scheduler.clock.now() - timedelta(seconds=self.retention_s)
        expired = [
            task.id
            for task in self.registry.list_all()
            if task.status is TaskStatus.COMPLETED
            and task.completed_at is not None
            and task.completed_at < cutoff
        ]
        for task_id in expired:
            self.registry.remove(task_id)

        if expired:
            logger.info(
                "cleanup event=swept removed=%s remaining=%s", len(expired), len(self.registry)
            )
        return expired
