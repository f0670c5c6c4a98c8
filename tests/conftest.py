from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import pytest
from fastapi.testclient import TestClient

from media_orchestrator.api.main import create_app
from media_orchestrator.clients.base import JobStatus
from media_orchestrator.config.settings import ServiceConfig, Settings
from media_orchestrator.scheduling.ticker import ManualScheduler
from media_orchestrator.service import TaskService
from media_orchestrator.storage.memory import InMemoryTaskRegistry
from media_orchestrator.storage.models import TaskKind

RUNNING = JobStatus(state="running")


class FakeSynchronousClient:
    """Test-only client double for request/response services."""

    def __init__(self, result: Any = None, *, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.requests: list[Any] = []

    def invoke(self, request: Any, config: ServiceConfig) -> Any:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


class FakeJobClient:
    """Scripted job client. Each script item is returned or, if an exception, raised.

    The last item of a script repeats once the script runs out. Every job keeps
    its own position in the status script.
    """

    def __init__(
        self,
        statuses: Sequence[JobStatus | Exception],
        *,
        payloads: Sequence[bytes | Exception] = (b"payload",),
        job_id: str | None = None,
        submit_error: Exception | None = None,
    ) -> None:
        self.statuses = list(statuses)
        self.payloads = list(payloads)
        self.job_id = job_id
        self.submit_error = submit_error
        self.submitted: list[Any] = []
        self.queries: list[str] = []
        self.fetches: list[str] = []
        self._job_ids = itertools.count(1)
        self._positions: dict[str, int] = {}

    def submit_job(self, request: Any, config: ServiceConfig) -> str:
        self.submitted.append(request)
        if self.submit_error is not None:
            raise self.submit_error
        return self.job_id or f"job-{next(self._job_ids)}"

    def query_job_status(self, job_id: str, config: ServiceConfig) -> JobStatus:
        self.queries.append(job_id)
        position = self._positions.get(job_id, 0)
        self._positions[job_id] = position + 1
        return _play(self.statuses, position)

    def fetch_result(self, result_ref: str, config: ServiceConfig) -> bytes:
        self.fetches.append(result_ref)
        return _play(self.payloads, len(self.fetches) - 1)


def _play(script: Sequence[Any], position: int) -> Any:
    item = script[min(position, len(script) - 1)]
    if isinstance(item, Exception):
        raise item
    return item


class CountingRegistry(InMemoryTaskRegistry):
    """Registry that records how often it is scanned and written."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.update_calls = 0
        self.list_all_calls = 0

    def update(self, task_id: str, **fields: Any):  # type: ignore[override]
        self.update_calls += 1
        return super().update(task_id, **fields)

    def list_all(self):  # type: ignore[override]
        self.list_all_calls += 1
        return super().list_all()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "speech_synthesis": {"endpoint": "https://speech.example", "api_key": "speech-key"},
        "speech_transcription": {"endpoint": "https://speech.example", "api_key": "speech-key"},
        "video_generation": {
            "endpoint": "https://video.example",
            "api_key": "video-key",
            "deployment": "sora",
        },
        "document_extraction": {"endpoint": "https://documents.example"},
        "sync_workers": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def make_service(scheduler: ManualScheduler) -> Iterator[Callable[..., TaskService]]:
    services: list[TaskService] = []

    def _make(
        clients: dict[TaskKind, Any] | None = None,
        *,
        settings: Settings | None = None,
        registry: InMemoryTaskRegistry | None = None,
        **kwargs: Any,
    ) -> TaskService:
        ids = itertools.count(1)
        service = TaskService(
            settings=settings or make_settings(),
            registry=registry or CountingRegistry(clock=scheduler.clock),
            scheduler=scheduler,
            clients=clients or {},
            id_factory=lambda: f"task-{next(ids)}",
            **kwargs,
        )
        services.append(service)
        return service

    yield _make
    for service in services:
        service.shutdown()


@pytest.fixture
def speech_client() -> FakeSynchronousClient:
    return FakeSynchronousClient({"content": b"ID3", "duration_s": 1.5})


@pytest.fixture
def video_client() -> FakeJobClient:
    return FakeJobClient(
        [RUNNING, JobStatus(state="succeeded", result_ref="gen-1")],
        payloads=[b"mp4"],
        job_id="abc",
    )


@pytest.fixture
def client(
    make_service: Callable[..., TaskService],
    speech_client: FakeSynchronousClient,
    video_client: FakeJobClient,
) -> Iterator[TestClient]:
    service = make_service(
        {
            TaskKind.SPEECH_SYNTHESIS: speech_client,
            TaskKind.VIDEO_GENERATION: video_client,
            TaskKind.DOCUMENT_EXTRACTION: FakeJobClient([RUNNING]),
        }
    )
    app = create_app(service=service)
    with TestClient(app) as test_client:
        yield test_client
