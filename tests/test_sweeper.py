from __future__ import annotations

from conftest import CountingRegistry

from media_orchestrator.errors import NetworkError
from media_orchestrator.polling.sweeper import CleanupSweeper
from media_orchestrator.scheduling.ticker import ManualScheduler
from media_orchestrator.storage.models import (
    SpeechSynthesisRequest,
    SpeechSynthesisResult,
    TaskKind,
    TaskStatus,
    build_task,
)


def add_speech_task(registry: CountingRegistry, scheduler: ManualScheduler, task_id: str) -> None:
    registry.add(
        build_task(
            TaskKind.SPEECH_SYNTHESIS,
            task_id=task_id,
            request=SpeechSynthesisRequest(text="hello"),
            created_at=scheduler.clock.now(),
        )
    )


def complete(registry: CountingRegistry, task_id: str) -> None:
    registry.update(task_id, status=TaskStatus.COMPLETED, result=SpeechSynthesisResult())


def test_sweep_removes_completed_tasks_past_retention(scheduler: ManualScheduler) -> None:
    registry = CountingRegistry(clock=scheduler.clock)
    sweeper = CleanupSweeper(registry, scheduler, retention_s=3600, interval_s=600)

    add_speech_task(registry, scheduler, "old")
    add_speech_task(registry, scheduler, "failed")
    add_speech_task(registry, scheduler, "pending")
    complete(registry, "old")
    registry.update("failed", status=TaskStatus.FAILED, error=NetworkError("unreachable"))

    scheduler.clock.advance(30 * 60)
    add_speech_task(registry, scheduler, "recent")
    complete(registry, "recent")
    scheduler.clock.advance(31 * 60)

    assert sweeper.sweep() == ["old"]
    assert [task.id for task in registry.list_all()] == ["failed", "pending", "recent"]


def test_sweep_on_empty_registry_does_not_scan(scheduler: ManualScheduler) -> None:
    registry = CountingRegistry(clock=scheduler.clock)
    sweeper = CleanupSweeper(registry, scheduler)

    assert sweeper.sweep() == []
    assert registry.list_all_calls == 0


def test_started_sweeper_runs_on_its_interval(scheduler: ManualScheduler) -> None:
    registry = CountingRegistry(clock=scheduler.clock)
    sweeper = CleanupSweeper(registry, scheduler, retention_s=3600, interval_s=600)
    add_speech_task(registry, scheduler, "done")
    complete(registry, "done")

    sweeper.start()
    sweeper.start()
    assert scheduler.active_tickers() == ["cleanup-sweep"]

    scheduler.advance(3600)
    assert registry.get("done") is not None

    scheduler.advance(600)
    assert registry.get("done") is None

    sweeper.stop()
    assert not sweeper.running
    assert scheduler.active_tickers() == []
