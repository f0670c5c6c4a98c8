"""Submission contract shared by every task kind.

Each kind exposes the same small capability set: ``submit``, ``poll_step`` and
``is_asynchronous``. Synchronous kinds resolve inside ``submit``; asynchronous
kinds submit a job once and hand it to the poller, which then calls
``poll_step`` once per attempt.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, Protocol

from pydantic import BaseModel

from media_orchestrator.clients.base import JobClient, SynchronousClient
from media_orchestrator.config.settings import ServiceConfig
from media_orchestrator.errors import (
    ConfigurationError,
    ExternalJobFailed,
    OrchestratorError,
    ResultFetchError,
    ServiceRequestError,
    TaskNotFoundError,
)
from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.models import TaskKind, TaskStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    interval_s: float
    # None means no ceiling: the kind is polled while any of its tasks is active.
    max_attempts: int | None = None


class OutcomeState(StrEnum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    FETCH_FAILED = "fetch_failed"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class PollOutcome:
    state: OutcomeState
    result: BaseModel | None = None
    error: OrchestratorError | None = None
    result_ref: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class JobHandoff(Protocol):
    def track(self, task_id: str, job_id: str, adapter: AsynchronousAdapter) -> Any: ...


class SubmissionAdapter(ABC):
    kind: ClassVar[TaskKind]
    is_asynchronous: ClassVar[bool]
    service_name: ClassVar[str]
    required_config: ClassVar[tuple[str, ...]] = ("endpoint", "api_key", "deployment")
    result_model: ClassVar[type[BaseModel]]

    def __init__(self, *, registry: TaskRegistry, client: Any, config: ServiceConfig) -> None:
        self.registry = registry
        self.client = client
        self.config = config

    def missing_config(self) -> list[str]:
        missing = self.config.missing(self.required_config)
        if self.client is None:
            missing.append("client")
        return missing

    def ensure_configured(self) -> None:
        missing = self.missing_config()
        if missing:
            raise ConfigurationError(self.service_name, missing)

    @abstractmethod
    def submit(self, task_id: str, request: BaseModel) -> None: ...

    def poll_step(
        self,
        job_id: str,
        *,
        result_ref: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> PollOutcome:
        raise NotImplementedError(f"{self.kind.value} tasks are not polled")

    def _fail(self, task_id: str, error: OrchestratorError) -> None:
        logger.info(
            "task_submit event=failed task_id=%s kind=%s error_kind=%s error=%s",
            task_id,
            self.kind.value,
            error.kind,
            error.message,
        )
        try:
            self.registry.update(task_id, status=TaskStatus.FAILED, error=error)
        except TaskNotFoundError:
            logger.info("task_submit event=removed task_id=%s kind=%s", task_id, self.kind.value)


class SynchronousAdapter(SubmissionAdapter):
    """One request, one response. The adapter owns exactly one attempt."""

    is_asynchronous: ClassVar[bool] = False
    client: SynchronousClient

    def submit(self, task_id: str, request: BaseModel) -> None:
        try:
            raw_result = self.client.invoke(request, self.config)
            result = self._coerce_result(raw_result)
        except OrchestratorError as exc:
            self._fail(task_id, exc)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "task_submit event=unexpected_error task_id=%s kind=%s", task_id, self.kind.value
            )
            self._fail(task_id, ServiceRequestError(f"{self.service_name} failed: {exc}"))
            return

        try:
            self.registry.update(task_id, status=TaskStatus.COMPLETED, result=result)
        except TaskNotFoundError:
            logger.info("task_submit event=removed task_id=%s kind=%s", task_id, self.kind.value)
            return
        logger.info("task_submit event=completed task_id=%s kind=%s", task_id, self.kind.value)

    def _coerce_result(self, raw: Any) -> BaseModel:
        if isinstance(raw, self.result_model):
            return raw
        if isinstance(raw, BaseModel):
            raw = dict(raw)
        return self.result_model.model_validate(raw)


class AsynchronousAdapter(SubmissionAdapter):
    """Submit a job once, then let the poller drive ``poll_step``."""

    is_asynchronous: ClassVar[bool] = True
    client: JobClient

    def __init__(
        self,
        *,
        registry: TaskRegistry,
        client: JobClient | None,
        config: ServiceConfig,
        poll_policy: PollPolicy,
        poller: JobHandoff,
    ) -> None:
        super().__init__(registry=registry, client=client, config=config)
        self.poll_policy = poll_policy
        self.poller = poller

    def submit(self, task_id: str, request: BaseModel) -> None:
        try:
            job_id = self.client.submit_job(request, self.config)
        except OrchestratorError as exc:
            self._fail(task_id, exc)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "task_submit event=unexpected_error task_id=%s kind=%s", task_id, self.kind.value
            )
            error = ServiceRequestError(f"{self.service_name} job submission failed: {exc}")
            self._fail(task_id, error)
            return

        if not job_id:
            self._fail(task_id, ServiceRequestError(f"{self.service_name} returned no job id"))
            return

        try:
            self.registry.update(
                task_id, status=TaskStatus.PROCESSING, external_job_ref=str(job_id)
            )
        except TaskNotFoundError:
            logger.info("task_submit event=removed task_id=%s kind=%s", task_id, self.kind.value)
            return
        logger.info(
            "task_submit event=job_submitted task_id=%s kind=%s job_id=%s",
            task_id,
            self.kind.value,
            job_id,
        )
        self.poller.track(task_id, str(job_id), self)

    def poll_step(
        self,
        job_id: str,
        *,
        result_ref: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> PollOutcome:
        """Run one attempt: query the job, or only retry the fetch when a result
        reference is already known."""
        details = dict(details or {})
        if result_ref is None:
            try:
                status = self.client.query_job_status(job_id, self.config)
            except OrchestratorError as exc:
                return PollOutcome(OutcomeState.QUERY_FAILED, error=exc)

            if not status.is_terminal:
                return PollOutcome(OutcomeState.RUNNING)
            if status.state == "failed":
                return PollOutcome(
                    OutcomeState.FAILED,
                    error=ExternalJobFailed(
                        status.error or f"{self.service_name} job failed",
                        details={"job_id": job_id, **status.details},
                    ),
                )
            if not status.result_ref:
                return PollOutcome(
                    OutcomeState.FAILED,
                    error=ExternalJobFailed(
                        "no result produced",
                        details={"job_id": job_id, "reason": "no_result"},
                    ),
                )
            result_ref = status.result_ref
            details.update(status.details)

        try:
            payload = self.client.fetch_result(result_ref, self.config)
        except OrchestratorError as exc:
            return PollOutcome(
                OutcomeState.FETCH_FAILED,
                error=ResultFetchError(
                    f"Fetching result {result_ref} failed: {exc.message}",
                    details={"job_id": job_id, "result_ref": result_ref, "cause": exc.kind},
                ),
                result_ref=result_ref,
                details=details,
            )

        result = self.build_result(
            job_id=job_id, result_ref=result_ref, payload=payload, details=details
        )
        return PollOutcome(OutcomeState.SUCCEEDED, result=result, result_ref=result_ref)

    @abstractmethod
    def build_result(
        self,
        *,
        job_id: str,
        result_ref: str,
        payload: bytes,
        details: Mapping[str, Any],
    ) -> BaseModel: ...
