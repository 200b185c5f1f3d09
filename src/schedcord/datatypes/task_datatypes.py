"""
Scheduled task records and repeat-interval arithmetic.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum

from schedcord.datatypes.action_datatypes import ScheduledAction


class RepeatKind(Enum):
    """Recurrence rule attached to a scheduled task."""

    NONE = "none"
    RELATIVE = "relative"
    DAILY = "daily"
    WEEKLY = "weekly"
    YEARLY = "yearly"

    def __str__(self) -> str:
        return self.value


class TaskState(Enum):
    """
    Lifecycle state of a task inside one scheduler tick.

    ``PENDING`` is reported for a task that ran but stays scheduled because it
    was edited while executing.
    """

    PENDING = "pending"
    EXECUTING = "executing"
    RETIRED = "retired"
    RESCHEDULED = "rescheduled"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _new_task_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class ScheduledTask:
    """
    A deferred (and optionally recurring) action.

    Attributes:
        execute_at: When the action must fire (timezone-aware UTC).
        action: The effect to perform.
        repeat: Recurrence rule; ``RepeatKind.NONE`` deletes the task after it runs.
        created_at: Insertion time, never changed after creation.
        repeat_interval: Fixed period for ``RepeatKind.RELATIVE``. When omitted
            it is captured as ``execute_at - created_at``.
        task_id: Opaque id that stays stable for the lifetime of the task.
            Listing ordinals are display-only and unrelated to this id.
    """
    execute_at: datetime.datetime
    action: ScheduledAction
    repeat: RepeatKind = RepeatKind.NONE
    created_at: datetime.datetime = field(default_factory=utcnow)
    repeat_interval: datetime.timedelta | None = None
    task_id: str = field(default_factory=_new_task_id)

    def __post_init__(self) -> None:
        if self.execute_at.tzinfo is None or self.created_at.tzinfo is None:
            raise ValueError("ScheduledTask timestamps must be timezone-aware")
        if self.repeat is RepeatKind.RELATIVE:
            interval = self.repeat_interval
            if interval is None:
                interval = self.execute_at - self.created_at
                object.__setattr__(self, "repeat_interval", interval)
            if interval <= datetime.timedelta(0):
                raise ValueError("Relative repeat interval must be positive")

    @property
    def repeats(self) -> bool:
        return self.repeat is not RepeatKind.NONE

    def is_due(self, now: datetime.datetime) -> bool:
        return self.execute_at <= now


def add_one_year(moment: datetime.datetime) -> datetime.datetime:
    """Same month/day/time next year; 29 February falls back to the 28th."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, day=28)


def next_execution(task: ScheduledTask) -> datetime.datetime:
    """
    Compute the next ``execute_at`` for a repeating task.

    The next run is always derived from the task's current ``execute_at``,
    never from the wall clock, so late ticks do not make a schedule drift.

    Raises:
        ValueError: If the task does not repeat.
    """
    match task.repeat:
        case RepeatKind.RELATIVE:
            assert task.repeat_interval is not None
            return task.execute_at + task.repeat_interval
        case RepeatKind.DAILY:
            return task.execute_at + datetime.timedelta(days=1)
        case RepeatKind.WEEKLY:
            return task.execute_at + datetime.timedelta(weeks=1)
        case RepeatKind.YEARLY:
            return add_one_year(task.execute_at)
        case RepeatKind.NONE:
            raise ValueError(f"Task {task.task_id} does not repeat")
