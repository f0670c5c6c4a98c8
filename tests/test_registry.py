from __future__ import annotations

from datetime import timedelta

import pytest

from media_orchestrator.errors import (
    DuplicateIdError,
    ErrorKind,
    IllegalTransitionError,
    NetworkError,
    TaskNotFoundError,
)
from media_orchestrator.scheduling.clock import ManualClock
from media_orchestrator.storage.memory import InMemoryTaskRegistry
from media_orchestrator.storage.models import (
    SpeechSynthesisRequest,
    SpeechSynthesisResult,
    TaskBase,
    TaskError,
    TaskKind,
    TaskStatus,
    VideoGenerationRequest,
    VideoGenerationResult,
    build_task,
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def registry(clock: ManualClock) -> InMemoryTaskRegistry:
    return InMemoryTaskRegistry(clock=clock)


def video_task(task_id: str, clock: ManualClock) -> TaskBase:
    return build_task(
        TaskKind.VIDEO_GENERATION,
        task_id=task_id,
        request=VideoGenerationRequest(prompt="a lighthouse at dusk"),
        created_at=clock.now(),
    )


def speech_task(task_id: str, clock: ManualClock) -> TaskBase:
    return build_task(
        TaskKind.SPEECH_SYNTHESIS,
        task_id=task_id,
        request=SpeechSynthesisRequest(text="hello"),
        created_at=clock.now(),
    )


def test_add_rejects_duplicate_ids(registry: InMemoryTaskRegistry, clock: ManualClock) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(DuplicateIdError):
        registry.add(video_task("t1", clock))
    assert len(registry) == 1


def test_new_task_starts_pending(registry: InMemoryTaskRegistry, clock: ManualClock) -> None:
    task = registry.add(video_task("t1", clock))
    assert task.status is TaskStatus.PENDING
    assert task.completed_at is None
    assert task.external_job_ref is None
    assert task.is_active


def test_update_unknown_task_raises(registry: InMemoryTaskRegistry) -> None:
    with pytest.raises(TaskNotFoundError) as exc_info:
        registry.update("missing", status=TaskStatus.PROCESSING)
    assert isinstance(exc_info.value, KeyError)
    assert exc_info.value.task_id == "missing"


def test_processing_async_task_requires_job_ref(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", status=TaskStatus.PROCESSING)

    task = registry.update("t1", status=TaskStatus.PROCESSING, external_job_ref="abc")
    assert task.external_job_ref == "abc"


def test_job_ref_requires_processing_status(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", external_job_ref="abc")

    task = registry.get("t1")
    assert task.status is TaskStatus.PENDING
    assert task.external_job_ref is None


def test_synchronous_task_rejects_job_ref(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(speech_task("s1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update("s1", status=TaskStatus.PROCESSING, external_job_ref="abc")


def test_processing_cannot_return_to_pending(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    registry.update("t1", status=TaskStatus.PROCESSING, external_job_ref="abc")
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", status=TaskStatus.PENDING)


def test_completion_stamps_time_and_clears_job_ref(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    registry.update("t1", status=TaskStatus.PROCESSING, external_job_ref="abc")
    clock.advance(42)

    task = registry.update(
        "t1",
        status=TaskStatus.COMPLETED,
        result=VideoGenerationResult(generation_id="g1", content=b"mp4"),
    )
    assert task.status is TaskStatus.COMPLETED
    assert task.completed_at == clock.now()
    assert task.completed_at >= task.created_at
    assert task.external_job_ref is None
    assert task.error is None


def test_terminal_task_never_changes_again(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(speech_task("s1", clock))
    completed = registry.update(
        "s1", status=TaskStatus.COMPLETED, result=SpeechSynthesisResult(content=b"ID3")
    )
    clock.advance(60)

    again = registry.update(
        "s1",
        status=TaskStatus.FAILED,
        error=TaskError(kind=ErrorKind.NETWORK, message="late failure"),
    )
    assert again == completed
    assert registry.get("s1").completed_at == completed.completed_at


def test_result_and_error_are_tied_to_status(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(speech_task("s1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update("s1", status=TaskStatus.COMPLETED)
    with pytest.raises(IllegalTransitionError):
        registry.update("s1", status=TaskStatus.FAILED)
    with pytest.raises(IllegalTransitionError):
        registry.update("s1", result=SpeechSynthesisResult(content=b"ID3"))
    assert registry.get("s1").status is TaskStatus.PENDING


def test_result_type_must_match_kind(registry: InMemoryTaskRegistry, clock: ManualClock) -> None:
    registry.add(speech_task("s1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update(
            "s1", status=TaskStatus.COMPLETED, result=VideoGenerationResult(generation_id="g1")
        )


def test_error_exception_is_recorded_as_task_error(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(speech_task("s1", clock))
    task = registry.update("s1", status=TaskStatus.FAILED, error=NetworkError("unreachable"))
    assert task.error == TaskError(kind=ErrorKind.NETWORK, message="unreachable")
    assert task.completed_at == clock.now()


def test_identity_fields_are_immutable(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", created_at=clock.now() + timedelta(seconds=1))
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", kind=TaskKind.DOCUMENT_EXTRACTION)
    with pytest.raises(IllegalTransitionError):
        registry.update("t1", request=VideoGenerationRequest(prompt="something else"))


def test_completed_at_is_not_set_on_active_tasks(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(IllegalTransitionError):
        registry.update(
            "t1",
            status=TaskStatus.PROCESSING,
            external_job_ref="abc",
            completed_at=clock.now(),
        )


def test_unknown_fields_are_rejected(registry: InMemoryTaskRegistry, clock: ManualClock) -> None:
    registry.add(video_task("t1", clock))
    with pytest.raises(ValueError, match="Unknown task fields"):
        registry.update("t1", priority="high")


def test_lists_keep_insertion_order_and_skip_removed(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    registry.add(speech_task("s1", clock))
    registry.add(video_task("t2", clock))
    registry.add(video_task("t3", clock))
    registry.update(
        "t2", status=TaskStatus.COMPLETED, result=VideoGenerationResult(generation_id="g2")
    )
    registry.remove("t1")
    registry.remove("t1")

    assert [task.id for task in registry.list_all()] == ["s1", "t2", "t3"]
    assert [task.id for task in registry.list_active()] == ["s1", "t3"]
    assert [task.id for task in registry.list_active(TaskKind.VIDEO_GENERATION)] == ["t3"]
    assert [task.id for task in registry.list_by_kind(TaskKind.VIDEO_GENERATION)] == ["t2", "t3"]
    assert registry.get("t1") is None


def test_snapshots_are_not_affected_by_later_updates(
    registry: InMemoryTaskRegistry, clock: ManualClock
) -> None:
    registry.add(video_task("t1", clock))
    before = registry.get("t1")
    registry.update("t1", status=TaskStatus.PROCESSING, external_job_ref="abc")

    assert before.status is TaskStatus.PENDING
    assert registry.get("t1").status is TaskStatus.PROCESSING
