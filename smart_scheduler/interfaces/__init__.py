"""Abstract interfaces for the engine's collaborators."""

from smart_scheduler.interfaces.preference_store import IPreferenceStore
from smart_scheduler.interfaces.schedule_repository import IScheduleRepository
from smart_scheduler.interfaces.task_source import ITaskIntervalStore, ITaskSource

__all__ = [
    "ITaskSource",
    "ITaskIntervalStore",
    "IPreferenceStore",
    "IScheduleRepository",
]
