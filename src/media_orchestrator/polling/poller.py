"""Bounded polling of external jobs.

Every tracked job moves through ``submitted -> polling`` and ends in one of
``succeeded``, ``failed``, ``timed_out`` or ``cancelled``. One scheduler tick
is one attempt. Kinds with an attempt ceiling get a ticker per job; kinds
without one share a ticker per kind that runs only while that kind still has
active tasks.

Before each attempt the task is re-read from the registry. A removed or
already resolved task ends the job without any query or registry write.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from functools import partial
from typing import Any

from media_orchestrator.adapters.base import AsynchronousAdapter, OutcomeState, PollOutcome
from media_orchestrator.errors import (
    JobTimeoutError,
    OrchestratorError,
    ResultFetchError,
    ServiceRequestError,
    TaskNotFoundError,
)
from media_orchestrator.scheduling.ticker import Scheduler, Ticker
from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.models import TaskError, TaskKind, TaskStatus

logger = logging.getLogger(__name__)


class PollState(StrEnum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_final(self) -> bool:
        return self not in (PollState.SUBMITTED, PollState.POLLING)


@dataclass
class PollJob:
    task_id: str
    job_id: str
    kind: TaskKind
    max_attempts: int | None
    state: PollState = PollState.SUBMITTED
    attempts: int = 0
    # Set once the job succeeded externally but its result has not been fetched yet.
    result_ref: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    last_error: TaskError | None = None


class Poller:
    def __init__(self, registry: TaskRegistry, scheduler: Scheduler) -> None:
        self.registry = registry
        self.scheduler = scheduler
        self._jobs: dict[str, PollJob] = {}
        self._adapters: dict[TaskKind, AsynchronousAdapter] = {}
        self._job_tickers: dict[str, Ticker] = {}
        self._kind_tickers: dict[TaskKind, Ticker] = {}
        self._lock = threading.Lock()

    def track(self, task_id: str, job_id: str, adapter: AsynchronousAdapter) -> PollJob:
        """Start polling ``job_id`` on behalf of ``task_id``."""
        policy = adapter.poll_policy
        job = PollJob(
            task_id=task_id,
            job_id=job_id,
            kind=adapter.kind,
            max_attempts=policy.max_attempts,
        )
        with self._lock:
            existing = self._jobs.get(task_id)
            if existing is not None and not existing.state.is_final:
                raise ValueError(f"Task {task_id} is already being polled")
            self._jobs[task_id] = job
            self._adapters[adapter.kind] = adapter

            if policy.max_attempts is not None:
                self._job_tickers[task_id] = self.scheduler.every(
                    policy.interval_s,
                    partial(self._tick_job, task_id),
                    name=f"poll-{adapter.kind.value}-{task_id}",
                )
            else:
                ticker = self._kind_tickers.get(adapter.kind)
                if ticker is None or ticker.cancelled:
                    self._kind_tickers[adapter.kind] = self.scheduler.every(
                        policy.interval_s,
                        partial(self._tick_kind, adapter.kind),
                        name=f"poll-{adapter.kind.value}",
                    )

        logger.info(
            "poll event=submitted task_id=%s kind=%s job_id=%s max_attempts=%s",
            task_id,
            adapter.kind.value,
            job_id,
            policy.max_attempts,
        )
        return job

    def job(self, task_id: str) -> PollJob | None:
        with self._lock:
            return self._jobs.get(task_id)

    def active_jobs(self) -> list[PollJob]:
        with self._lock:
            return [job for job in self._jobs.values() if not job.state.is_final]

    def shutdown(self) -> None:
        with self._lock:
            tickers = list(self._job_tickers.values()) + list(self._kind_tickers.values())
            self._job_tickers.clear()
            self._kind_tickers.clear()
        # Cancel outside the lock: a running callback may be waiting for it.
        for ticker in tickers:
            ticker.cancel()

    def _tick_job(self, task_id: str) -> None:
        with self._lock:
            job = self._jobs.get(task_id)
            adapter = self._adapters.get(job.kind) if job is not None else None
        if job is None or adapter is None or job.state.is_final:
            self._finish(task_id)
            return
        self._attempt(job, adapter)
        if job.state.is_final:
            self._finish(task_id)

    def _tick_kind(self, kind: TaskKind) -> None:
        with self._lock:
            if not self.registry.list_active(kind):
                ticker = self._kind_tickers.pop(kind, None)
                if ticker is not None:
                    ticker.cancel()
                # Jobs left here belong to removed tasks.
                for task_id in [tid for tid, job in self._jobs.items() if job.kind == kind]:
                    self._jobs.pop(task_id).state = PollState.CANCELLED
                logger.info("poll event=idle kind=%s", kind.value)
                return
            adapter = self._adapters[kind]
            jobs = [job for job in self._jobs.values() if job.kind == kind]

        for job in jobs:
            if not job.state.is_final:
                self._attempt(job, adapter)
            if job.state.is_final:
                with self._lock:
                    if self._jobs.get(job.task_id) is job:
                        del self._jobs[job.task_id]

    def _finish(self, task_id: str) -> None:
        with self._lock:
            self._jobs.pop(task_id, None)
            ticker = self._job_tickers.pop(task_id, None)
        if ticker is not None:
            ticker.cancel()

    def _attempt(self, job: PollJob, adapter: AsynchronousAdapter) -> None:
        task = self.registry.get(job.task_id)
        if task is None or task.status.is_terminal or task.external_job_ref != job.job_id:
            job.state = PollState.CANCELLED
            logger.info(
                "poll event=cancelled task_id=%s job_id=%s reason=%s",
                job.task_id,
                job.job_id,
                "removed" if task is None else "resolved",
            )
            return

        job.state = PollState.POLLING
        job.attempts += 1
        try:
            outcome = adapter.poll_step(job.job_id, result_ref=job.result_ref, details=job.details)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "poll event=unexpected_error task_id=%s job_id=%s attempt=%s",
                job.task_id,
                job.job_id,
                job.attempts,
            )
            outcome = PollOutcome(
                OutcomeState.QUERY_FAILED,
                error=ServiceRequestError(f"Polling {job.job_id} failed: {exc}"),
            )

        if outcome.state is OutcomeState.SUCCEEDED:
            self._resolve(
                job, PollState.SUCCEEDED, status=TaskStatus.COMPLETED, result=outcome.result
            )
            return
        if outcome.state is OutcomeState.FAILED:
            self._resolve(job, PollState.FAILED, status=TaskStatus.FAILED, error=outcome.error)
            return
        if outcome.state is OutcomeState.FETCH_FAILED:
            job.result_ref = outcome.result_ref
            job.details = dict(outcome.details)
        if outcome.error is not None:
            job.last_error = TaskError.from_exception(outcome.error)
            logger.warning(
                "poll event=%s task_id=%s job_id=%s attempt=%s error=%s",
                outcome.state.value,
                job.task_id,
                job.job_id,
                job.attempts,
                outcome.error.message,
            )
        else:
            logger.debug(
                "poll event=running task_id=%s job_id=%s attempt=%s",
                job.task_id,
                job.job_id,
                job.attempts,
            )

        if job.max_attempts is not None and job.attempts >= job.max_attempts:
            self._exhausted(job)

    def _exhausted(self, job: PollJob) -> None:
        error: OrchestratorError
        if job.result_ref is not None:
            error = ResultFetchError(
                f"Result {job.result_ref} could not be fetched after {job.attempts} attempts",
                details={
                    "job_id": job.job_id,
                    "result_ref": job.result_ref,
                    "attempts": job.attempts,
                },
            )
            state = PollState.FAILED
        else:
            error = JobTimeoutError(
                f"Job {job.job_id} did not finish after {job.attempts} attempts",
                details={"job_id": job.job_id, "attempts": job.attempts},
            )
            state = PollState.TIMED_OUT
        self._resolve(job, state, status=TaskStatus.FAILED, error=error)

    def _resolve(self, job: PollJob, state: PollState, **fields: Any) -> None:
        try:
            updated = self.registry.update(job.task_id, **fields)
        except TaskNotFoundError:
            updated = None
        if updated is None or updated.status is not fields["status"]:
            # Removed or resolved elsewhere while this attempt was in flight.
            job.state = PollState.CANCELLED
            logger.info("poll event=cancelled task_id=%s job_id=%s", job.task_id, job.job_id)
            return
        job.state = state
        logger.info(
            "poll event=%s task_id=%s job_id=%s attempts=%s",
            state.value,
            job.task_id,
            job.job_id,
            job.attempts,
        )
