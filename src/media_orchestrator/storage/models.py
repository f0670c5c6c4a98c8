"""Task records shared by the registry, adapters, poller and API.

A task is a tagged union over ``kind``: every variant carries its own request
and result model. Binary payloads stay on the models but are excluded from
serialization so JSON responses never echo audio, video or documents.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field, model_validator

from media_orchestrator.errors import ErrorKind, OrchestratorError


class TaskKind(StrEnum):
    SPEECH_SYNTHESIS = "speech-synthesis"
    SPEECH_TRANSCRIPTION = "speech-transcription"
    VIDEO_GENERATION = "video-generation"
    DOCUMENT_EXTRACTION = "document-extraction"

    @property
    def is_asynchronous(self) -> bool:
        return self in (TaskKind.VIDEO_GENERATION, TaskKind.DOCUMENT_EXTRACTION)


class TaskStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.PROCESSING})


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid", ser_json_bytes="base64", val_json_bytes="base64")


class BinaryPayload(StrictModel):
    content: bytes = Field(default=b"", exclude=True, repr=False)
    content_type: str = "application/octet-stream"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_length(self) -> int:
        return len(self.content)


class TaskError(StrictModel):
    kind: ErrorKind
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: OrchestratorError) -> TaskError:
        kind = exc.kind or ErrorKind.SERVICE_REQUEST
        return cls(kind=kind, message=exc.message, details=exc.details)


AudioFormat = Literal["mp3", "opus", "aac", "flac", "wav", "pcm"]
RecognitionMode = Literal["interactive", "conversation", "dictation"]


class SpeechSynthesisRequest(StrictModel):
    text: str = Field(min_length=1)
    voice: str = "alloy"
    speed: float = Field(default=1.0, ge=0.25, le=4.0)
    format: AudioFormat = "mp3"
    instructions: str | None = None


class SpeechSynthesisResult(BinaryPayload):
    content_type: str = "audio/mpeg"
    duration_s: float | None = None


class SpeechTranscriptionRequest(StrictModel):
    file_name: str = Field(min_length=1)
    audio: bytes = Field(default=b"", exclude=True, repr=False)
    language: str = "auto"
    recognition_mode: RecognitionMode = "interactive"
    profanity_filter: bool = False
    confidence_threshold: float = Field(default=0.0, ge=0.0, le=1.0)


class WordDetail(StrictModel):
    word: str
    confidence: float
    start_s: float
    end_s: float


class SpeechTranscriptionResult(StrictModel):
    transcript: str
    confidence: float = Field(ge=0.0, le=1.0)
    words: list[WordDetail] = Field(default_factory=list)


class VideoGenerationRequest(StrictModel):
    prompt: str = Field(min_length=1)
    width: int = Field(default=1920, ge=1)
    height: int = Field(default=1080, ge=1)
    duration: int = Field(default=5, ge=1, le=60)
    n_variants: int = Field(default=1, ge=1, le=4)


class VideoGenerationResult(BinaryPayload):
    content_type: str = "video/mp4"
    duration_s: float | None = None
    job_id: str | None = None
    generation_id: str
    thumbnail_url: str | None = None


class DocumentExtractionRequest(StrictModel):
    file_name: str = Field(min_length=1)
    content: bytes = Field(default=b"", exclude=True, repr=False)
    file_size: int = Field(default=0, ge=0)
    ocr_type: Literal["azure"] = "azure"

    @model_validator(mode="after")
    def _fill_file_size(self) -> DocumentExtractionRequest:
        if not self.file_size and self.content:
            self.file_size = len(self.content)
        return self


class DocumentExtractionResult(BinaryPayload):
    document_job_id: str
    output_docx_url: str | None = None
    output_json_url: str | None = None


class TaskBase(StrictModel):
    """Fields common to every task kind. Records are immutable snapshots."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    id: str
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime
    completed_at: datetime | None = None
    error: TaskError | None = None
    external_job_ref: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SpeechSynthesisTask(TaskBase):
    kind: Literal[TaskKind.SPEECH_SYNTHESIS] = TaskKind.SPEECH_SYNTHESIS
    request: SpeechSynthesisRequest
    result: SpeechSynthesisResult | None = None


class SpeechTranscriptionTask(TaskBase):
    kind: Literal[TaskKind.SPEECH_TRANSCRIPTION] = TaskKind.SPEECH_TRANSCRIPTION
    request: SpeechTranscriptionRequest
    result: SpeechTranscriptionResult | None = None


class VideoGenerationTask(TaskBase):
    kind: Literal[TaskKind.VIDEO_GENERATION] = TaskKind.VIDEO_GENERATION
    request: VideoGenerationRequest
    result: VideoGenerationResult | None = None


class DocumentExtractionTask(TaskBase):
    kind: Literal[TaskKind.DOCUMENT_EXTRACTION] = TaskKind.DOCUMENT_EXTRACTION
    request: DocumentExtractionRequest
    result: DocumentExtractionResult | None = None


Task = Annotated[
    SpeechSynthesisTask | SpeechTranscriptionTask | VideoGenerationTask | DocumentExtractionTask,
    Field(discriminator="kind"),
]

TaskRequest = (
    SpeechSynthesisRequest
    | SpeechTranscriptionRequest
    | VideoGenerationRequest
    | DocumentExtractionRequest
)

TaskResult = (
    SpeechSynthesisResult
    | SpeechTranscriptionResult
    | VideoGenerationResult
    | DocumentExtractionResult
)

TASK_MODELS: dict[TaskKind, type[TaskBase]] = {
    TaskKind.SPEECH_SYNTHESIS: SpeechSynthesisTask,
    TaskKind.SPEECH_TRANSCRIPTION: SpeechTranscriptionTask,
    TaskKind.VIDEO_GENERATION: VideoGenerationTask,
    TaskKind.DOCUMENT_EXTRACTION: DocumentExtractionTask,
}

REQUEST_MODELS: dict[TaskKind, type[StrictModel]] = {
    TaskKind.SPEECH_SYNTHESIS: SpeechSynthesisRequest,
    TaskKind.SPEECH_TRANSCRIPTION: SpeechTranscriptionRequest,
    TaskKind.VIDEO_GENERATION: VideoGenerationRequest,
    TaskKind.DOCUMENT_EXTRACTION: DocumentExtractionRequest,
}

RESULT_MODELS: dict[TaskKind, type[StrictModel]] = {
    TaskKind.SPEECH_SYNTHESIS: SpeechSynthesisResult,
    TaskKind.SPEECH_TRANSCRIPTION: SpeechTranscriptionResult,
    TaskKind.VIDEO_GENERATION: VideoGenerationResult,
    TaskKind.DOCUMENT_EXTRACTION: DocumentExtractionResult,
}

task_adapter: TypeAdapter[Task] = TypeAdapter(Task)


def parse_request(kind: TaskKind, params: Mapping[str, Any] | BaseModel) -> TaskRequest:
    model = REQUEST_MODELS[kind]
    if isinstance(params, model):
        return params  # type: ignore[return-value]
    if isinstance(params, BaseModel):
        # dict() keeps payload fields that model_dump() excludes.
        params = dict(params)
    return model.model_validate(params)  # type: ignore[return-value]


def parse_request_json(kind: TaskKind, data: str | bytes) -> TaskRequest:
    """Validate a JSON document; binary fields are expected base64-encoded."""
    return REQUEST_MODELS[kind].model_validate_json(data)  # type: ignore[return-value]


def build_task(
    kind: TaskKind,
    *,
    task_id: str,
    request: TaskRequest,
    created_at: datetime,
) -> TaskBase:
    model = TASK_MODELS[kind]
    return model(id=task_id, request=request, created_at=created_at)
