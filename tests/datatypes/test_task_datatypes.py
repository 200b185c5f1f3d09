import datetime

import pytest

from schedcord.datatypes.action_datatypes import Echo
from schedcord.datatypes.discord_datatypes import ChannelID
from schedcord.datatypes.task_datatypes import (
    RepeatKind,
    ScheduledTask,
    add_one_year,
    next_execution,
)

UTC = datetime.timezone.utc


def _task(execute_at, repeat=RepeatKind.NONE, created_at=None, interval=None):
    return ScheduledTask(
        execute_at=execute_at,
        action=Echo(ChannelID(42), "hi"),
        repeat=repeat,
        created_at=created_at or execute_at - datetime.timedelta(hours=1),
        repeat_interval=interval,
    )


def test_relative_interval_captured_from_creation():
    created = datetime.datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
    task = _task(created + datetime.timedelta(minutes=30), RepeatKind.RELATIVE, created_at=created)

    assert task.repeat_interval == datetime.timedelta(minutes=30)
    assert next_execution(task) == created + datetime.timedelta(minutes=60)


def test_relative_interval_must_be_positive():
    moment = datetime.datetime(2024, 1, 1, tzinfo=UTC)
    with pytest.raises(ValueError):
        _task(moment, RepeatKind.RELATIVE, created_at=moment)


def test_naive_timestamps_are_rejected():
    with pytest.raises(ValueError):
        ScheduledTask(execute_at=datetime.datetime(2024, 1, 1), action=Echo(ChannelID(1), "x"))


def test_daily_crosses_month_boundary():
    task = _task(datetime.datetime(2024, 1, 31, 10, 0, tzinfo=UTC), RepeatKind.DAILY)
    assert next_execution(task) == datetime.datetime(2024, 2, 1, 10, 0, tzinfo=UTC)


def test_weekly_adds_seven_days():
    task = _task(datetime.datetime(2024, 12, 28, 8, 15, tzinfo=UTC), RepeatKind.WEEKLY)
    assert next_execution(task) == datetime.datetime(2025, 1, 4, 8, 15, tzinfo=UTC)


def test_yearly_keeps_month_and_day():
    task = _task(datetime.datetime(2023, 6, 15, 12, 0, tzinfo=UTC), RepeatKind.YEARLY)
    assert next_execution(task) == datetime.datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def test_yearly_leap_day_falls_back_to_28th():
    leap = datetime.datetime(2024, 2, 29, 9, 0, tzinfo=UTC)
    assert add_one_year(leap) == datetime.datetime(2025, 2, 28, 9, 0, tzinfo=UTC)


def test_next_execution_rejects_non_repeating_task():
    with pytest.raises(ValueError):
        next_execution(_task(datetime.datetime(2024, 1, 1, tzinfo=UTC)))


def test_task_ids_are_unique_and_due_check_is_inclusive():
    moment = datetime.datetime(2024, 1, 1, tzinfo=UTC)
    a, b = _task(moment), _task(moment)
    assert a.task_id != b.task_id
    assert a.is_due(moment)
    assert not a.is_due(moment - datetime.timedelta(microseconds=1))
