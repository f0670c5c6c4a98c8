"""Per-kind submission adapters."""

from media_orchestrator.adapters.base import (
    AsynchronousAdapter,
    OutcomeState,
    PollOutcome,
    PollPolicy,
    SubmissionAdapter,
    SynchronousAdapter,
)
from media_orchestrator.adapters.kinds import (
    DocumentExtractionAdapter,
    SpeechSynthesisAdapter,
    SpeechTranscriptionAdapter,
    VideoGenerationAdapter,
)
from media_orchestrator.adapters.registry import build_adapters, list_kinds, poll_policy_for

__all__ = [
    "AsynchronousAdapter",
    "DocumentExtractionAdapter",
    "OutcomeState",
    "PollOutcome",
    "PollPolicy",
    "SpeechSynthesisAdapter",
    "SpeechTranscriptionAdapter",
    "SubmissionAdapter",
    "SynchronousAdapter",
    "VideoGenerationAdapter",
    "build_adapters",
    "list_kinds",
    "poll_policy_for",
]
