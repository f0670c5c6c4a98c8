"""Error taxonomy shared by the registry, adapters and poller."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    CONFIGURATION = "ConfigurationError"
    NETWORK = "NetworkError"
    SERVICE_REQUEST = "ServiceRequestError"
    EXTERNAL_JOB_FAILED = "ExternalJobFailed"
    TIMEOUT = "TimeoutError"
    RESULT_FETCH = "ResultFetchError"


class OrchestratorError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind | None = None

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class ConfigurationError(OrchestratorError):
    """Required endpoint, credential or deployment is missing."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, service: str, missing: list[str]) -> None:
        joined = ", ".join(missing)
        super().__init__(
            f"{service} is not configured (missing: {joined})",
            details={"service": service, "missing": list(missing)},
        )
        self.service = service
        self.missing = list(missing)


class NetworkError(OrchestratorError):
    """Transport-level failure talking to an external service."""

    kind = ErrorKind.NETWORK


class ServiceRequestError(OrchestratorError):
    """The external service answered but rejected the request."""

    kind = ErrorKind.SERVICE_REQUEST

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        payload = dict(details or {})
        if status_code is not None:
            payload.setdefault("status_code", status_code)
        super().__init__(message, details=payload)
        self.status_code = status_code


class ExternalJobFailed(OrchestratorError):
    kind = ErrorKind.EXTERNAL_JOB_FAILED


class JobTimeoutError(OrchestratorError):
    """Attempt budget exhausted before the external job reached a terminal state."""

    kind = ErrorKind.TIMEOUT


class ResultFetchError(OrchestratorError):
    kind = ErrorKind.RESULT_FETCH


class DuplicateIdError(OrchestratorError):
    pass


class IllegalTransitionError(OrchestratorError):
    pass


class TaskNotFoundError(OrchestratorError, KeyError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} does not exist", details={"task_id": task_id})
        self.task_id = task_id

    def __str__(self) -> str:
        return self.message
