"""
Persistent storage for the scheduled task list.

The table is always rewritten in full: ``replace_all`` deletes every row and
inserts the current list in one transaction, so the stored list is either the
old one or the new one, never a mix.

Timestamps are stored as ISO-8601 strings and the Relative interval as
integer microseconds so that every value reloads exactly as it was written.
"""

from __future__ import annotations

import datetime
import json
from typing import Any, Dict, List, Sequence, assert_never

from schedcord.database.db_connection import ConnectionManager, db_connection
from schedcord.datatypes.action_datatypes import (
    ActionKind,
    AddRole,
    Echo,
    RemoveRole,
    ScheduledAction,
    Unban,
)
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.datatypes.task_datatypes import RepeatKind, ScheduledTask
from schedcord.util.logger import get_logger

logger = get_logger("scheduled_task_repo")


def action_to_payload(action: ScheduledAction) -> Dict[str, Any]:
    match action:
        case AddRole() | RemoveRole():
            return {"role_id": str(action.role_id), "user_id": str(action.user_id), "reason": action.reason}
        case Echo():
            return {"destination": str(action.destination), "content": action.content}
        case Unban():
            return {"user_id": str(action.user_id), "reason": action.reason}
        case _:
            assert_never(action)


def action_from_payload(kind: ActionKind, payload: Dict[str, Any]) -> ScheduledAction:
    match kind:
        case ActionKind.ADD_ROLE:
            return AddRole(RoleID(payload["role_id"]), UserID(payload["user_id"]), payload.get("reason", ""))
        case ActionKind.REMOVE_ROLE:
            return RemoveRole(RoleID(payload["role_id"]), UserID(payload["user_id"]), payload.get("reason", ""))
        case ActionKind.ECHO:
            return Echo(ChannelID(payload["destination"]), payload["content"])
        case ActionKind.UNBAN:
            return Unban(UserID(payload["user_id"]), payload.get("reason", ""))
        case _:
            assert_never(kind)


def _interval_to_us(interval: datetime.timedelta | None) -> int | None:
    if interval is None:
        return None
    return (interval.days * 86_400 + interval.seconds) * 1_000_000 + interval.microseconds


def task_to_row(position: int, task: ScheduledTask) -> tuple:
    return (
        task.task_id,
        position,
        task.created_at.isoformat(),
        task.execute_at.isoformat(),
        task.action.kind.value,
        json.dumps(action_to_payload(task.action)),
        task.repeat.value,
        _interval_to_us(task.repeat_interval),
    )


def task_from_row(row) -> ScheduledTask:
    interval_us = row["repeat_interval_us"]
    return ScheduledTask(
        task_id=row["task_id"],
        created_at=datetime.datetime.fromisoformat(row["created_at"]),
        execute_at=datetime.datetime.fromisoformat(row["execute_at"]),
        action=action_from_payload(ActionKind(row["action_kind"]), json.loads(row["action_payload"])),
        repeat=RepeatKind(row["repeat_kind"]),
        repeat_interval=None if interval_us is None else datetime.timedelta(microseconds=interval_us),
    )


class ScheduledTaskRepo:
    """Full-list reads and writes for the ``scheduled_tasks`` table."""

    def __init__(self, connection: ConnectionManager | None = None) -> None:
        self._db = connection or db_connection

    async def replace_all(self, tasks: Sequence[ScheduledTask]) -> None:
        """Atomically replace the stored list with ``tasks`` (in order)."""
        async with self._db.transaction() as conn:
            await conn.execute("DELETE FROM scheduled_tasks")
            await conn.executemany(
                """
                INSERT INTO scheduled_tasks (
                    task_id, position, created_at, execute_at,
                    action_kind, action_payload, repeat_kind, repeat_interval_us
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [task_to_row(i, task) for i, task in enumerate(tasks)],
            )
        logger.debug("[TASK REPO] Persisted %d scheduled tasks", len(tasks))

    async def load_all(self) -> List[ScheduledTask]:
        """Return every stored task in store order."""
        async with self._db.read() as conn:
            cursor = await conn.execute(
                "SELECT task_id, created_at, execute_at, action_kind, action_payload, "
                "repeat_kind, repeat_interval_us FROM scheduled_tasks ORDER BY position"
            )
            rows = await cursor.fetchall()
        return [task_from_row(row) for row in rows]
