"""
py-cord implementation of ``PlatformClient`` for the single managed guild.

Missing roles, members, channels and users surface as
``TargetNotFoundError``; every other Discord failure becomes
``EffectInvocationError`` so callers only deal with schedcord errors.
"""

from __future__ import annotations

from typing import List

import discord

from schedcord.datatypes.audit_datatypes import AuditActionKind, AuditEntry
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.errors import EffectInvocationError, TargetNotFoundError
from schedcord.util.logger import get_logger

logger = get_logger("discord_client")

_AUDIT_ACTIONS = {
    AuditActionKind.KICK: discord.AuditLogAction.kick,
    AuditActionKind.BAN: discord.AuditLogAction.ban,
}


class DiscordPlatformClient:
    """
    Platform client bound to one guild of a running bot.

    Args:
        bot: Connected py-cord bot.
        guild_id: Guild all role, ban and audit operations apply to.
    """

    def __init__(self, bot: discord.Bot, guild_id: int) -> None:
        self.bot = bot
        self.guild_id = guild_id

    def _guild(self) -> discord.Guild:
        guild = self.bot.get_guild(self.guild_id)
        if guild is None:
            raise EffectInvocationError(f"Guild {self.guild_id} is not available")
        return guild

    async def _member(self, guild: discord.Guild, user_id: UserID) -> discord.Member:
        member = guild.get_member(user_id.to_int())
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id.to_int())
        except discord.NotFound as exc:
            raise TargetNotFoundError(f"User {user_id} is not a member of {guild.name}") from exc
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Could not fetch member {user_id}: {exc}") from exc

    @staticmethod
    def _role(guild: discord.Guild, role_id: RoleID) -> discord.Role:
        role = guild.get_role(role_id.to_int())
        if role is None:
            raise TargetNotFoundError(f"Role {role_id} does not exist in {guild.name}")
        return role

    async def add_role(self, user_id: UserID, role_id: RoleID, reason: str) -> None:
        guild = self._guild()
        member = await self._member(guild, user_id)
        role = self._role(guild, role_id)
        try:
            await member.add_roles(role, reason=reason or None)
        except discord.NotFound as exc:
            raise TargetNotFoundError(str(exc)) from exc
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Failed to add role {role_id} to {user_id}: {exc}") from exc

    async def remove_role(self, user_id: UserID, role_id: RoleID, reason: str) -> None:
        guild = self._guild()
        member = await self._member(guild, user_id)
        role = self._role(guild, role_id)
        try:
            await member.remove_roles(role, reason=reason or None)
        except discord.NotFound as exc:
            raise TargetNotFoundError(str(exc)) from exc
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Failed to remove role {role_id} from {user_id}: {exc}") from exc

    async def send_message(self, destination: ChannelID, content: str) -> None:
        """Send to a channel, falling back to a DM when the id names a user."""
        target = self.bot.get_channel(destination.to_int())
        try:
            if target is None:
                try:
                    target = await self.bot.fetch_channel(destination.to_int())
                except (discord.NotFound, discord.Forbidden, discord.InvalidData):
                    target = await self.bot.fetch_user(destination.to_int())
            await target.send(content)
        except discord.NotFound as exc:
            raise TargetNotFoundError(f"No channel or user with id {destination}") from exc
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Failed to send message to {destination}: {exc}") from exc

    async def unban(self, user_id: UserID, reason: str) -> None:
        guild = self._guild()
        try:
            await guild.unban(discord.Object(id=user_id.to_int()), reason=reason or None)
        except discord.NotFound as exc:
            raise TargetNotFoundError(f"User {user_id} is not in the ban list") from exc
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Failed to unban {user_id}: {exc}") from exc

    async def get_recent_audit_entries(self, kind: AuditActionKind, limit: int) -> List[AuditEntry]:
        guild = self._guild()
        entries: List[AuditEntry] = []
        try:
            async for entry in guild.audit_logs(limit=limit, action=_AUDIT_ACTIONS[kind]):
                target = entry.target
                if target is None or entry.user is None:
                    continue
                entries.append(
                    AuditEntry(
                        actor_id=UserID.from_object(entry.user),
                        actor_name=getattr(entry.user, "display_name", None) or str(entry.user),
                        target_id=UserID.from_object(target),
                        reason=entry.reason,
                        created_at=entry.created_at,
                        action_kind=kind,
                    )
                )
        except discord.HTTPException as exc:
            raise EffectInvocationError(f"Failed to read {kind} audit log: {exc}") from exc
        return entries
