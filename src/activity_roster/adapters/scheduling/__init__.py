"""Scheduling adapters."""

from activity_roster.adapters.scheduling.invalidation_scheduler import InvalidationScheduler
from activity_roster.adapters.scheduling.task_scheduler import ScheduledTask, TaskScheduler

__all__ = ["InvalidationScheduler", "ScheduledTask", "TaskScheduler"]
