"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from media_orchestrator.storage.models import TaskKind

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class ServiceConfig(BaseModel):
    """Connection details for one external service."""

    endpoint: str = ""
    api_key: str = ""
    api_version: str = ""
    deployment: str = ""

    def missing(self, required: tuple[str, ...]) -> list[str]:
        return [name for name in required if not str(getattr(self, name, "")).strip()]

    def merged(self, **overrides: str | None) -> "ServiceConfig":
        """Return a copy with every non-empty override applied."""
        fields = type(self).model_fields
        updates = {key: value for key, value in overrides.items() if value and key in fields}
        return self.model_copy(update=updates)


class SpeechSynthesisConfig(ServiceConfig):
    api_version: str = "2025-03-01-preview"
    deployment: str = "gpt-4o-mini-tts"


class SpeechTranscriptionConfig(ServiceConfig):
    api_version: str = "2024-06-01"
    deployment: str = "whisper"


class VideoGenerationConfig(ServiceConfig):
    api_version: str = "preview"


class DocumentExtractionConfig(ServiceConfig):
    pass


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "media-orchestrator"
    app_env: str = "dev"
    log_level: str = "INFO"

    speech_synthesis: SpeechSynthesisConfig = Field(default_factory=SpeechSynthesisConfig)
    speech_transcription: SpeechTranscriptionConfig = Field(
        default_factory=SpeechTranscriptionConfig
    )
    video_generation: VideoGenerationConfig = Field(default_factory=VideoGenerationConfig)
    document_extraction: DocumentExtractionConfig = Field(
        default_factory=DocumentExtractionConfig
    )

    video_poll_interval_s: float = Field(default=5.0, gt=0)
    video_max_attempts: int = Field(default=60, ge=1)
    document_poll_interval_s: float = Field(default=30.0, gt=0)
    cleanup_interval_s: float = Field(default=600.0, gt=0)
    retention_s: float = Field(default=3600.0, gt=0)
    sync_workers: int = Field(default=4, ge=0)
    # "package.module:callable" returning a mapping of task kind to client.
    clients_factory: str = ""

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_ORCHESTRATOR_",
        env_nested_delimiter="__",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def service_config(self, kind: TaskKind) -> ServiceConfig:
        return getattr(self, _field_name(kind))


def _field_name(kind: TaskKind) -> str:
    return kind.value.replace("-", "_")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
