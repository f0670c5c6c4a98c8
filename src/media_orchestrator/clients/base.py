"""Interfaces of the external service clients the adapters drive.

Clients own everything wire-level (URLs, auth headers, payload encoding).
They raise ``NetworkError`` when the service cannot be reached and
``ServiceRequestError`` when it answers with a rejection.
"""

from __future__ import annotations

from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from media_orchestrator.config.settings import ServiceConfig

JobState = Literal["pending", "running", "succeeded", "failed"]


class JobStatus(BaseModel):
    state: JobState
    result_ref: str | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state in ("succeeded", "failed")


class SynchronousClient(Protocol):
    def invoke(self, request: Any, config: ServiceConfig) -> Any: ...


class JobClient(Protocol):
    def submit_job(self, request: Any, config: ServiceConfig) -> str: ...

    def query_job_status(self, job_id: str, config: ServiceConfig) -> JobStatus: ...

    def fetch_result(self, result_ref: str, config: ServiceConfig) -> bytes: ...
