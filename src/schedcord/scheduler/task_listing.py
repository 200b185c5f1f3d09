"""
Text rendering of the task list for the ``/schedule`` commands.

Ordinals shown here are 1-based positions in a store snapshot. They are only
valid for the snapshot they were rendered from; commands resolve them back to
a task through ``resolve_ordinal`` on a fresh snapshot.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence

from schedcord.datatypes.action_datatypes import ActionKind
from schedcord.datatypes.task_datatypes import RepeatKind, ScheduledTask
from schedcord.errors import NotFoundError
from schedcord.scheduler import action_codec
from schedcord.util.format_utils import discord_timestamp, format_duration

# Discord rejects messages above 2000 characters
MAX_MESSAGE_LENGTH = 2000


def resolve_ordinal(tasks: Sequence[ScheduledTask], ordinal: int) -> ScheduledTask:
    """
    Map a listing ordinal to its task.

    Raises:
        NotFoundError: If no task has that ordinal.
    """
    if ordinal < 1 or ordinal > len(tasks):
        raise NotFoundError(f"There is no scheduled task #{ordinal}.")
    return tasks[ordinal - 1]


def describe_repeat(task: ScheduledTask) -> str:
    if task.repeat is RepeatKind.NONE:
        return "once"
    if task.repeat is RepeatKind.RELATIVE and task.repeat_interval is not None:
        return f"every {format_duration(task.repeat_interval)}"
    return str(task.repeat)


def format_summary(counts: Mapping[ActionKind, int]) -> str:
    """Counts per action kind, e.g. for ``/schedule info``."""
    lines = [f"There are {sum(counts.values())} scheduled tasks."]
    lines += [f"- `{kind.value}`: {count}" for kind, count in counts.items()]
    return "\n".join(lines)


def format_task_line(ordinal: int, task: ScheduledTask) -> str:
    repeat = "" if task.repeat is RepeatKind.NONE else f" ({describe_repeat(task)})"
    return (
        f"`#{ordinal}` {discord_timestamp(task.execute_at, 'R')}{repeat}: "
        f"`{action_codec.encode(task.action)}`"
    )


def format_task_list(tasks: Sequence[ScheduledTask], limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Render every task as one line and pack the lines into Discord-sized pages.

    Returns at least one page.
    """
    if not tasks:
        return ["There are no scheduled tasks."]

    pages: List[str] = []
    current = ""
    for ordinal, task in enumerate(tasks, start=1):
        line = format_task_line(ordinal, task)
        if len(line) > limit:
            line = line[: limit - 1] + "…"
        if current and len(current) + 1 + len(line) > limit:
            pages.append(current)
            current = line
        else:
            current = f"{current}\n{line}" if current else line
    pages.append(current)
    return pages


def format_task_detail(ordinal: int, task: ScheduledTask) -> str:
    return "\n".join([
        f"**Scheduled task #{ordinal}**",
        f"Action: `{action_codec.encode(task.action)}`",
        f"Created: {discord_timestamp(task.created_at)}",
        f"Executes: {discord_timestamp(task.execute_at)} ({discord_timestamp(task.execute_at, 'R')})",
        f"Repeats: {describe_repeat(task)}",
    ])
