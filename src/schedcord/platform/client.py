"""
Interface to the chat platform used by the scheduler and the departure correlator.

Everything the core needs from Discord goes through ``PlatformClient`` so the
engine can be driven by a fake in tests and by ``DiscordPlatformClient`` in
production. Implementations raise ``TargetNotFoundError`` when the role,
channel or user named by a call no longer exists and
``EffectInvocationError`` for any other failure.
"""

from __future__ import annotations

from typing import List, Protocol

from schedcord.datatypes.audit_datatypes import AuditActionKind, AuditEntry
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID


class PlatformClient(Protocol):

    async def add_role(self, user_id: UserID, role_id: RoleID, reason: str) -> None: ...

    async def remove_role(self, user_id: UserID, role_id: RoleID, reason: str) -> None: ...

    async def send_message(self, destination: ChannelID, content: str) -> None: ...

    async def unban(self, user_id: UserID, reason: str) -> None: ...

    async def get_recent_audit_entries(self, kind: AuditActionKind, limit: int) -> List[AuditEntry]: ...
