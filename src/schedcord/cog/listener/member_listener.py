"""Member event listener cog.

Feeds guild membership events into the scheduling engine:

- ``on_member_join``    records the join, hands out the new-member role and
                        schedules its removal
- ``on_member_update``  keeps the stored username/nickname current
- ``on_member_remove``  asks the departure correlator why the member left and
                        posts the result to the moderation log
- ``on_member_unban``   drops pending unban tasks for that user
"""

from __future__ import annotations

import datetime

import discord
from discord.ext import commands

from schedcord.configuration.app_configuration import AppConfig, app_config
from schedcord.datatypes.action_datatypes import RemoveRole
from schedcord.datatypes.audit_datatypes import DepartureRecord
from schedcord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID
from schedcord.datatypes.task_datatypes import ScheduledTask, utcnow
from schedcord.errors import SchedcordError
from schedcord.moderation.departure_correlator import DepartureCorrelator, is_pending_unban_for
from schedcord.platform.client import PlatformClient
from schedcord.repositories.member_history_repo import MemberHistoryRepo
from schedcord.scheduler.task_store import ScheduledTaskStore
from schedcord.util.format_utils import discord_timestamp
from schedcord.util.logger import get_logger

logger = get_logger("member_listener")


class MemberListenerCog(commands.Cog):
    """Handles member join, update, leave and unban events for the managed guild."""

    def __init__(
        self,
        bot: discord.Bot,
        *,
        store: ScheduledTaskStore,
        correlator: DepartureCorrelator,
        history: MemberHistoryRepo,
        client: PlatformClient,
        config: AppConfig = app_config,
    ) -> None:
        self.bot = bot
        self.store = store
        self.correlator = correlator
        self.history = history
        self.client = client
        self.config = config
        logger.info("[MEMBER LISTENER] Member listener cog loaded")

    def _is_managed(self, guild: discord.Guild) -> bool:
        guild_id = self.config.guild_id
        return guild_id is None or GuildID.from_guild(guild) == guild_id

    async def _post_mod_log(self, message: str) -> None:
        channel_id = self.config.mod_log_channel_id
        if channel_id is None:
            return
        try:
            await self.client.send_message(ChannelID(channel_id), message)
        except SchedcordError as exc:
            logger.error("[MEMBER LISTENER] Failed to post to mod log channel %s: %s", channel_id, exc)

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        if not self._is_managed(member.guild):
            return

        user_id = UserID.from_user(member)
        joined_at = member.joined_at or utcnow()
        logger.debug("[MEMBER LISTENER] New member join: %s (%s)", member, member.id)

        previous_joins = 0
        try:
            existing = await self.history.get(user_id)
            previous_joins = len(existing.joins) if existing else 0
            await self.history.record_join(user_id, str(member), member.display_name, joined_at)
        except Exception as exc:
            logger.error("[MEMBER LISTENER] Could not record join for %s: %s", member.id, exc)

        expires = await self._grant_new_member_role(user_id, joined_at)

        line = f"Join: <@{member.id}> (`{member.id}`), created {discord_timestamp(member.created_at, 'R')}"
        if previous_joins:
            line += f", Joined {previous_joins} times before"
        if expires is not None:
            line += f"\nNew member role expires {discord_timestamp(expires, 'R')}"
        await self._post_mod_log(line)

    async def _grant_new_member_role(
        self, user_id: UserID, joined_at: datetime.datetime
    ) -> datetime.datetime | None:
        """Add the new-member role and schedule its removal. Returns the expiry time."""
        if not self.config.manage_new_member_roles:
            logger.debug("[MEMBER LISTENER] Skipping new member role, role management is off")
            return None
        role_value = self.config.new_member_role_id
        if role_value is None:
            logger.warning("[MEMBER LISTENER] new_members.manage_roles is on but no role_id is set")
            return None

        role_id = RoleID(role_value)
        decay = self.config.new_member_role_decay_minutes
        try:
            await self.client.add_role(user_id, role_id, "New user join.")
        except SchedcordError as exc:
            logger.error("[MEMBER LISTENER] Could not add new member role to %s: %s", user_id, exc)
            return None

        expires = joined_at + datetime.timedelta(minutes=decay)
        removal = RemoveRole(
            role_id=role_id,
            user_id=user_id,
            reason=f"New member role removal, {decay:g} minutes passed.",
        )
        try:
            await self.store.create(ScheduledTask(execute_at=expires, action=removal))
        except SchedcordError as exc:
            logger.error("[MEMBER LISTENER] Could not schedule new member role removal for %s: %s", user_id, exc)
            return None
        return expires

    # ------------------------------------------------------------------
    # Profile changes
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if not self._is_managed(after.guild):
            return
        if str(before) == str(after) and before.display_name == after.display_name:
            return
        try:
            await self.history.update_nickname(UserID.from_user(after), str(after), after.display_name)
        except Exception as exc:
            logger.error("[MEMBER LISTENER] Could not update stored name for %s: %s", after.id, exc)

    # ------------------------------------------------------------------
    # Departures
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_remove")
    async def on_member_remove(self, member: discord.Member) -> None:
        if not self._is_managed(member.guild):
            return

        record = await self._departure_record(member)
        verdict = await self.correlator.handle_departure(record)
        await self._post_mod_log(verdict.message)

    async def _departure_record(self, member: discord.Member) -> DepartureRecord:
        user_id = UserID.from_user(member)
        try:
            stored = await self.history.get(user_id)
        except Exception as exc:
            logger.error("[MEMBER LISTENER] Could not read history for %s: %s", member.id, exc)
            stored = None

        if stored is None:
            joins = [member.joined_at] if member.joined_at else []
            return DepartureRecord(user_id=user_id, username=str(member), join_history=joins)
        return DepartureRecord(
            user_id=user_id,
            username=str(member),
            last_known_nickname=stored.last_nickname,
            join_history=stored.joins,
        )

    # ------------------------------------------------------------------
    # Unbans
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_unban")
    async def on_member_unban(self, guild: discord.Guild, user: discord.User) -> None:
        if not self._is_managed(guild):
            return
        logger.debug("[MEMBER LISTENER] User was unbanned: %s (%s)", user, user.id)
        try:
            removed = await self.store.delete_where(is_pending_unban_for(UserID.from_user(user)))
        except SchedcordError as exc:
            logger.error("[MEMBER LISTENER] Could not cancel pending unbans for %s: %s", user.id, exc)
            return
        if removed:
            logger.info("[MEMBER LISTENER] Cancelled %d pending unban tasks for %s", len(removed), user.id)


def setup(
    bot: discord.Bot,
    *,
    store: ScheduledTaskStore,
    correlator: DepartureCorrelator,
    history: MemberHistoryRepo,
    client: PlatformClient,
) -> None:
    bot.add_cog(MemberListenerCog(bot, store=store, correlator=correlator, history=history, client=client))
