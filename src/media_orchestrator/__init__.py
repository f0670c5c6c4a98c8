"""Task orchestration and external-job polling for media services."""

from media_orchestrator.errors import ConfigurationError, TaskNotFoundError
from media_orchestrator.service import TaskService
from media_orchestrator.storage.models import TaskKind, TaskStatus

__all__ = ["ConfigurationError", "TaskKind", "TaskNotFoundError", "TaskService", "TaskStatus"]

__version__ = "0.1.0"
