"""Background batch scheduling of suggestion generation."""

from loreweave.scheduler.background import JobStatus, ProgressRecord, SuggestionScheduler

__all__ = [
    "JobStatus",
    "ProgressRecord",
    "SuggestionScheduler",
]
