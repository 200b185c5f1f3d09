"""
Audit log and departure data structures used by the departure correlator.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from schedcord.datatypes.discord_datatypes import UserID


class AuditActionKind(Enum):
    """Moderation audit entries the correlator looks at."""

    KICK = "kick"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value


class DepartureCause(Enum):
    """Inferred reason a member left the guild."""

    BANNED = "ban"
    KICKED = "kick"
    LEFT = "left"


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """Read-only view of one audit log entry."""
    actor_id: UserID
    target_id: UserID
    reason: str | None
    created_at: datetime.datetime
    action_kind: AuditActionKind
    actor_name: str = ""


@dataclass(slots=True)
class DepartureRecord:
    """What we know about a member at the moment they left."""
    user_id: UserID
    username: str
    last_known_nickname: str = "<UNKNOWN>"
    join_history: List[datetime.datetime] = field(default_factory=list)

    @property
    def last_join(self) -> datetime.datetime | None:
        return self.join_history[-1] if self.join_history else None


@dataclass(frozen=True, slots=True)
class DepartureVerdict:
    """
    Outcome of correlating a departure with the audit log.

    Attributes:
        cause: Banned, Kicked or Left.
        entry: The audit entry responsible, if any.
        message: Log line formatted for Discord (relative timestamps).
        file_message: Same line with ISO timestamps for the log file.
        cancelled_tasks: Number of pending tasks removed for the user.
    """
    cause: DepartureCause
    entry: AuditEntry | None
    message: str
    file_message: str
    cancelled_tasks: int = 0
