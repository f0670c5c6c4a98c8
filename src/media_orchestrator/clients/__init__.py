"""External service client interfaces."""

from media_orchestrator.clients.base import JobClient, JobState, JobStatus, SynchronousClient
from media_orchestrator.clients.loader import load_clients

__all__ = ["JobClient", "JobState", "JobStatus", "SynchronousClient", "load_clients"]
