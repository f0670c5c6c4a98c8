"""FastAPI app entrypoint for media-orchestrator."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field, ValidationError

from media_orchestrator.adapters.registry import list_kinds
from media_orchestrator.clients.loader import load_clients
from media_orchestrator.config.settings import Settings, get_settings
from media_orchestrator.errors import ConfigurationError, TaskNotFoundError
from media_orchestrator.service import TaskService
from media_orchestrator.storage.models import BinaryPayload, TaskBase, TaskKind, parse_request_json

logger = logging.getLogger(__name__)


class SubmitTaskRequest(BaseModel):
    kind: TaskKind
    request: dict[str, Any] = Field(default_factory=dict)


class SubmitTaskResponse(BaseModel):
    task_id: str


class ServiceConfigUpdate(BaseModel):
    endpoint: str | None = None
    api_key: str | None = None
    api_version: str | None = None
    deployment: str | None = None


def build_service(settings: Settings, clients: Mapping[TaskKind, Any] | None = None) -> TaskService:
    worker_pool = (
        ThreadPoolExecutor(max_workers=settings.sync_workers, thread_name_prefix="task-submit")
        if settings.sync_workers > 0
        else None
    )
    return TaskService(
        settings=settings,
        clients=clients if clients is not None else load_clients(settings),
        worker_pool=worker_pool,
    )


def create_app(
    *,
    service: TaskService | None = None,
    settings_override: Settings | None = None,
    clients: Mapping[TaskKind, Any] | None = None,
) -> FastAPI:
    if service is not None:
        settings = service.settings
    else:
        settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.getLogger("media_orchestrator").setLevel(settings.log_level.upper())
        app.state.service.start()
        try:
            yield
        finally:
            app.state.service.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service or build_service(settings, clients)

    def _get_service(request: Request) -> TaskService:
        return request.app.state.service

    def _get_task_or_404(task_service: TaskService, task_id: str) -> TaskBase:
        try:
            return task_service.get_task(task_id)
        except TaskNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Task not found") from exc

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/kinds")
    def kinds() -> dict[str, list[str]]:
        return {"kinds": list_kinds()}

    @app.get("/services")
    def services(request: Request) -> dict[str, dict[str, Any]]:
        return _get_service(request).configuration_status()

    @app.patch("/services/{kind}")
    def update_service(
        kind: TaskKind, payload: ServiceConfigUpdate, request: Request
    ) -> dict[str, Any]:
        task_service = _get_service(request)
        task_service.update_service_config(kind, **payload.model_dump())
        return task_service.configuration_status()[kind.value]

    @app.post("/tasks", response_model=SubmitTaskResponse)
    def submit_task(payload: SubmitTaskRequest, request: Request) -> SubmitTaskResponse:
        task_service = _get_service(request)
        try:
            task_request = parse_request_json(payload.kind, json.dumps(payload.request))
            task_id = task_service.submit(payload.kind, task_request)
        except ConfigurationError as exc:
            raise HTTPException(
                status_code=400,
                detail={"message": exc.message, "service": exc.service, "missing": exc.missing},
            ) from exc
        except ValidationError as exc:
            raise HTTPException(
                status_code=422,
                detail=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc
        return SubmitTaskResponse(task_id=task_id)

    @app.get("/tasks")
    def list_tasks(
        request: Request,
        kind: TaskKind | None = Query(default=None),
        active: bool = Query(default=False),
    ) -> list[dict[str, Any]]:
        task_service = _get_service(request)
        if kind is not None:
            tasks = task_service.list_by_kind(kind)
            if active:
                tasks = [task for task in tasks if task.is_active]
        elif active:
            tasks = task_service.list_active()
        else:
            tasks = task_service.list_tasks()
        return [serialize_task(task) for task in tasks]

    @app.get("/tasks/{task_id}")
    def get_task(task_id: str, request: Request) -> dict[str, Any]:
        return serialize_task(_get_task_or_404(_get_service(request), task_id))

    @app.get("/tasks/{task_id}/content")
    def get_task_content(task_id: str, request: Request) -> Response:
        task = _get_task_or_404(_get_service(request), task_id)
        result = getattr(task, "result", None)
        if not isinstance(result, BinaryPayload) or not result.content:
            raise HTTPException(status_code=404, detail="Task has no downloadable content")
        return Response(content=result.content, media_type=result.content_type)

    @app.delete("/tasks/{task_id}", status_code=204)
    def remove_task(task_id: str, request: Request) -> Response:
        _get_service(request).remove(task_id)
        return Response(status_code=204)

    return app


def serialize_task(task: TaskBase) -> dict[str, Any]:
    # Binary payloads are excluded by the models; see /tasks/{id}/content.
    return task.model_dump(mode="json")


# Module-level app for `uvicorn media_orchestrator.api.main:app`.
app = create_app()
