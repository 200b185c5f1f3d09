"""
Persistent member history: last known names and join timestamps.

Only what the departure log line needs is kept here.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import List

from schedcord.database.db_connection import ConnectionManager, db_connection
from schedcord.datatypes.discord_datatypes import UserID


@dataclass
class MemberHistory:
    """A member's stored profile and ordered join timestamps."""
    user_id: UserID
    username: str
    last_nickname: str
    joins: List[datetime.datetime] = field(default_factory=list)


class MemberHistoryRepo:
    """CRUD for ``member_profiles`` and ``member_joins``."""

    def __init__(self, connection: ConnectionManager | None = None) -> None:
        self._db = connection or db_connection

    async def record_join(
        self,
        user_id: UserID,
        username: str,
        nickname: str,
        joined_at: datetime.datetime,
    ) -> None:
        """Upsert the profile and append a join timestamp (duplicates ignored)."""
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO member_profiles (user_id, username, last_nickname)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    username      = excluded.username,
                    last_nickname = excluded.last_nickname,
                    updated_at    = CURRENT_TIMESTAMP
                """,
                (str(user_id), username, nickname),
            )
            await conn.execute(
                "INSERT OR IGNORE INTO member_joins (user_id, joined_at) VALUES (?, ?)",
                (str(user_id), joined_at.isoformat()),
            )

    async def update_nickname(self, user_id: UserID, username: str, nickname: str) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO member_profiles (user_id, username, last_nickname)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    username      = excluded.username,
                    last_nickname = excluded.last_nickname,
                    updated_at    = CURRENT_TIMESTAMP
                """,
                (str(user_id), username, nickname),
            )

    async def get(self, user_id: UserID) -> MemberHistory | None:
        """Return the stored history for ``user_id``, or None if never seen."""
        async with self._db.read() as conn:
            cursor = await conn.execute(
                "SELECT username, last_nickname FROM member_profiles WHERE user_id = ?",
                (str(user_id),),
            )
            profile = await cursor.fetchone()
            if profile is None:
                return None
            cursor = await conn.execute(
                "SELECT joined_at FROM member_joins WHERE user_id = ? ORDER BY joined_at",
                (str(user_id),),
            )
            rows = await cursor.fetchall()

        return MemberHistory(
            user_id=user_id,
            username=profile["username"],
            last_nickname=profile["last_nickname"],
            joins=[datetime.datetime.fromisoformat(row["joined_at"]) for row in rows],
        )
