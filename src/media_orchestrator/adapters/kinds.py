"""Concrete adapters, one per task kind."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from media_orchestrator.adapters.base import AsynchronousAdapter, SynchronousAdapter
from media_orchestrator.storage.models import (
    DocumentExtractionResult,
    SpeechSynthesisResult,
    SpeechTranscriptionResult,
    TaskKind,
    VideoGenerationResult,
)


class SpeechSynthesisAdapter(SynchronousAdapter):
    kind = TaskKind.SPEECH_SYNTHESIS
    service_name = "Speech synthesis"
    result_model = SpeechSynthesisResult


class SpeechTranscriptionAdapter(SynchronousAdapter):
    kind = TaskKind.SPEECH_TRANSCRIPTION
    service_name = "Speech transcription"
    result_model = SpeechTranscriptionResult


class VideoGenerationAdapter(AsynchronousAdapter):
    kind = TaskKind.VIDEO_GENERATION
    service_name = "Video generation"
    result_model = VideoGenerationResult

    def build_result(
        self,
        *,
        job_id: str,
        result_ref: str,
        payload: bytes,
        details: Mapping[str, Any],
    ) -> VideoGenerationResult:
        # The result reference is the id of the first generation of the job.
        return VideoGenerationResult(
            content=payload,
            duration_s=details.get("duration_s"),
            job_id=job_id,
            generation_id=result_ref,
            thumbnail_url=details.get("thumbnail_url"),
        )


class DocumentExtractionAdapter(AsynchronousAdapter):
    kind = TaskKind.DOCUMENT_EXTRACTION
    service_name = "Document extraction"
    required_config = ("endpoint",)
    result_model = DocumentExtractionResult

    def build_result(
        self,
        *,
        job_id: str,
        result_ref: str,
        payload: bytes,
        details: Mapping[str, Any],
    ) -> DocumentExtractionResult:
        # The result reference is the download URL of the extracted document.
        return DocumentExtractionResult(
            content=payload,
            content_type=details.get(
                "content_type",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            ),
            document_job_id=job_id,
            output_docx_url=details.get("output_docx_url", result_ref),
            output_json_url=details.get("output_json_url"),
        )
