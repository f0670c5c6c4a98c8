"""Adapter registry resolution from settings and injected clients."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from media_orchestrator.adapters.base import JobHandoff, PollPolicy, SubmissionAdapter
from media_orchestrator.adapters.kinds import (
    DocumentExtractionAdapter,
    SpeechSynthesisAdapter,
    SpeechTranscriptionAdapter,
    VideoGenerationAdapter,
)
from media_orchestrator.config.settings import Settings
from media_orchestrator.storage.base import TaskRegistry
from media_orchestrator.storage.models import TaskKind


def poll_policy_for(kind: TaskKind, settings: Settings) -> PollPolicy | None:
    if kind is TaskKind.VIDEO_GENERATION:
        return PollPolicy(
            interval_s=settings.video_poll_interval_s,
            max_attempts=settings.video_max_attempts,
        )
    if kind is TaskKind.DOCUMENT_EXTRACTION:
        return PollPolicy(interval_s=settings.document_poll_interval_s, max_attempts=None)
    return None


def build_adapters(
    *,
    settings: Settings,
    registry: TaskRegistry,
    poller: JobHandoff,
    clients: Mapping[TaskKind, Any] | None = None,
) -> dict[TaskKind, SubmissionAdapter]:
    client_map = dict(clients or {})
    return {
        TaskKind.SPEECH_SYNTHESIS: SpeechSynthesisAdapter(
            registry=registry,
            client=client_map.get(TaskKind.SPEECH_SYNTHESIS),
            config=settings.service_config(TaskKind.SPEECH_SYNTHESIS),
        ),
        TaskKind.SPEECH_TRANSCRIPTION: SpeechTranscriptionAdapter(
            registry=registry,
            client=client_map.get(TaskKind.SPEECH_TRANSCRIPTION),
            config=settings.service_config(TaskKind.SPEECH_TRANSCRIPTION),
        ),
        TaskKind.VIDEO_GENERATION: VideoGenerationAdapter(
            registry=registry,
            client=client_map.get(TaskKind.VIDEO_GENERATION),
            config=settings.service_config(TaskKind.VIDEO_GENERATION),
            poll_policy=poll_policy_for(TaskKind.VIDEO_GENERATION, settings),
            poller=poller,
        ),
        TaskKind.DOCUMENT_EXTRACTION: DocumentExtractionAdapter(
            registry=registry,
            client=client_map.get(TaskKind.DOCUMENT_EXTRACTION),
            config=settings.service_config(TaskKind.DOCUMENT_EXTRACTION),
            poll_policy=poll_policy_for(TaskKind.DOCUMENT_EXTRACTION, settings),
            poller=poller,
        ),
    }


def list_kinds() -> list[str]:
    return sorted(kind.value for kind in TaskKind)
