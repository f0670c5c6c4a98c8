"""External job polling and retention cleanup."""

from media_orchestrator.polling.poller import Poller, PollJob, PollState
from media_orchestrator.polling.sweeper import CleanupSweeper

__all__ = ["CleanupSweeper", "PollJob", "PollState", "Poller"]
