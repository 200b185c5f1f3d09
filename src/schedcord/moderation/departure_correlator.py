"""
Departure cause correlation.

Discord only tells us that a member left, never why. To tell a kick or ban
apart from a voluntary leave we assume that when a member is kicked or banned
the leave event arrives within ``window`` seconds of the audit entry, and
before ``lookback`` other kicks/bans push that entry out of the most recent
page of the audit log. This is an approximation: when it fails, a
kick or ban is reported as a plain leave, never the other way round.

Whatever the cause, the departed member's pending tasks are cancelled, except
pending unbans: those only go away through an explicit unban.
"""

from __future__ import annotations

import datetime
from typing import Callable, List

from schedcord.datatypes.action_datatypes import ActionKind, target_user_id
from schedcord.datatypes.audit_datatypes import (
    AuditActionKind,
    AuditEntry,
    DepartureCause,
    DepartureRecord,
    DepartureVerdict,
)
from schedcord.datatypes.discord_datatypes import UserID
from schedcord.datatypes.task_datatypes import ScheduledTask, utcnow
from schedcord.errors import PersistenceError
from schedcord.platform.client import PlatformClient
from schedcord.scheduler.task_store import ScheduledTaskStore
from schedcord.util.format_utils import discord_timestamp
from schedcord.util.logger import get_logger

logger = get_logger("departure_correlator")

DEFAULT_WINDOW_SECONDS = 100.0
DEFAULT_AUDIT_LOOKBACK = 5


def is_cancellable_for(user_id: UserID) -> Callable[[ScheduledTask], bool]:
    """Predicate selecting a departed user's tasks that should be dropped."""
    uid = user_id.to_int()

    def predicate(task: ScheduledTask) -> bool:
        if task.action.kind is ActionKind.UNBAN:
            return False
        return target_user_id(task.action) == uid

    return predicate


def is_pending_unban_for(user_id: UserID) -> Callable[[ScheduledTask], bool]:
    uid = user_id.to_int()
    return lambda task: task.action.kind is ActionKind.UNBAN and target_user_id(task.action) == uid


class DepartureCorrelator:
    """
    Classifies member departures as Banned, Kicked or Left.

    Args:
        client: Platform client used to read the audit log.
        store: Task store whose pending tasks are cancelled for departed users.
        window_seconds: Maximum distance between an audit entry and the leave.
        audit_lookback: How many recent entries of each kind to inspect.
        clock: Returns the current UTC time; replaced in tests.
    """

    def __init__(
        self,
        client: PlatformClient,
        store: ScheduledTaskStore,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        audit_lookback: int = DEFAULT_AUDIT_LOOKBACK,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.client = client
        self.store = store
        self.window = datetime.timedelta(seconds=window_seconds)
        self.audit_lookback = audit_lookback
        self._clock = clock

    async def _matching_entry(
        self, kind: AuditActionKind, user_id: UserID, now: datetime.datetime
    ) -> AuditEntry | None:
        try:
            entries = await self.client.get_recent_audit_entries(kind, self.audit_lookback)
        except Exception as exc:
            logger.warning("[DEPARTURE] Could not read %s audit log, assuming no %s: %s", kind, kind, exc)
            return None

        for entry in entries:
            if entry.target_id != user_id:
                continue
            if abs(now - entry.created_at) <= self.window:
                return entry
        return None

    async def classify(
        self, user_id: UserID, now: datetime.datetime | None = None
    ) -> tuple[DepartureCause, AuditEntry | None]:
        """
        Decide why ``user_id`` left. A matching ban wins over a matching kick,
        since a kicked user may be banned moments later by a separate action.
        """
        now = now or self._clock()

        ban = await self._matching_entry(AuditActionKind.BAN, user_id, now)
        if ban is not None:
            return DepartureCause.BANNED, ban

        kick = await self._matching_entry(AuditActionKind.KICK, user_id, now)
        if kick is not None:
            return DepartureCause.KICKED, kick

        return DepartureCause.LEFT, None

    async def cancel_pending_tasks(self, user_id: UserID) -> List[ScheduledTask]:
        """Delete the user's pending tasks except unbans. Returns what was removed."""
        removed = await self.store.delete_where(is_cancellable_for(user_id))
        if removed:
            logger.debug("[DEPARTURE] Cancelled %d scheduled tasks for %s", len(removed), user_id)
        return removed

    async def handle_departure(
        self, record: DepartureRecord, now: datetime.datetime | None = None
    ) -> DepartureVerdict:
        """Classify a departure, cancel the user's tasks and build the log lines."""
        now = now or self._clock()
        logger.debug("[DEPARTURE] Member leaving: %s (%s)", record.username, record.user_id)

        cause, entry = await self.classify(record.user_id, now)
        try:
            cancelled = await self.cancel_pending_tasks(record.user_id)
        except PersistenceError as exc:
            logger.error("[DEPARTURE] Could not cancel scheduled tasks for %s: %s", record.user_id, exc)
            cancelled = []

        message, file_message = format_departure(record, cause, entry)
        logger.info("[DEPARTURE] %s", file_message)
        return DepartureVerdict(
            cause=cause,
            entry=entry,
            message=message,
            file_message=file_message,
            cancelled_tasks=len(cancelled),
        )


def format_departure(
    record: DepartureRecord, cause: DepartureCause, entry: AuditEntry | None
) -> tuple[str, str]:
    """
    Build the moderation log line for a departure.

    Returns a Discord-formatted line (relative timestamp markup) and a plain
    variant with an ISO timestamp for the log file.
    """
    label = {
        DepartureCause.BANNED: "Leave (Ban)",
        DepartureCause.KICKED: "Leave (Kick)",
        DepartureCause.LEFT: "Leave",
    }[cause]
    who = f"{record.username} ({record.last_known_nickname}) (`{record.user_id}`)"

    last_join = record.last_join
    if last_join is None:
        joined, joined_file = "joined at an unknown time", "joined at an unknown time"
    else:
        joined = f"joined {discord_timestamp(last_join, 'R')}"
        joined_file = f"joined {last_join.isoformat()}"

    suffix = ""
    if entry is not None:
        moderator = entry.actor_name or str(entry.actor_id)
        suffix = f", \"{entry.reason or 'No reason given'}\" by {moderator} (`{entry.actor_id}`)"

    return f"{label}: {who} {joined}{suffix}", f"{label}: {who} {joined_file}{suffix}"
