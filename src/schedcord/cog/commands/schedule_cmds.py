"""
Schedule cog: administrative view and editing of the scheduled task list.

Exposes the ``/schedule`` slash command group. Every subcommand requires the
Manage Server permission and answers ephemerally. Tasks are addressed by
their ordinal in ``/schedule list``; action arguments use the same language
the list prints, e.g. ``removerole 123 from 456 because trial over``.
"""

from __future__ import annotations

from dataclasses import replace

import discord
from discord import Option
from discord.ext import commands

from schedcord.datatypes.action_datatypes import ActionKind
from schedcord.datatypes.task_datatypes import RepeatKind, ScheduledTask, utcnow
from schedcord.errors import MalformedActionError, NotFoundError, PersistenceError
from schedcord.scheduler import action_codec
from schedcord.scheduler.task_listing import (
    format_summary,
    format_task_detail,
    format_task_list,
    resolve_ordinal,
)
from schedcord.scheduler.task_store import ScheduledTaskStore
from schedcord.util.format_utils import discord_timestamp, parse_timestamp
from schedcord.util.logger import get_logger

logger = get_logger("schedule_commands")

REPEAT_CHOICES = [kind.value for kind in RepeatKind]
ACTION_HELP = "\n".join(f"`{action_codec.usage(kind)}`" for kind in ActionKind)


class ScheduleCog(commands.Cog):
    """Slash commands for inspecting and editing scheduled tasks."""

    schedule = discord.SlashCommandGroup("schedule", "View and edit scheduled tasks")

    def __init__(self, bot: discord.Bot, store: ScheduledTaskStore) -> None:
        self.bot = bot
        self.store = store
        logger.info("[SCHEDULE CMDS] Schedule cog loaded")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        permissions = getattr(ctx.user, "guild_permissions", None)
        if permissions is None or not permissions.manage_guild:
            await ctx.respond("You need Manage Server permission.", ephemeral=True)
            return False
        return True

    def _task_at(self, ordinal: int) -> ScheduledTask:
        return resolve_ordinal(self.store.snapshot(), ordinal)

    async def _respond_error(self, ctx: discord.ApplicationContext, exc: Exception) -> None:
        if isinstance(exc, MalformedActionError):
            await ctx.respond(f"Malformed action: {exc}\nExpected one of:\n{ACTION_HELP}", ephemeral=True)
        elif isinstance(exc, PersistenceError):
            logger.error("[SCHEDULE CMDS] %s", exc)
            await ctx.respond("Could not save the schedule; nothing was changed.", ephemeral=True)
        else:
            await ctx.respond(str(exc), ephemeral=True)

    # ------------------------------------------------------------------
    # Read-only commands
    # ------------------------------------------------------------------

    @schedule.command(name="info", description="Show how many tasks of each kind are scheduled")
    async def info(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return
        await ctx.respond(format_summary(self.store.count_by_kind()), ephemeral=True)

    @schedule.command(name="list", description="List every scheduled task")
    async def list_tasks(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return
        pages = format_task_list(self.store.snapshot())
        await ctx.respond(pages[0], ephemeral=True)
        for page in pages[1:]:
            await ctx.followup.send(page, ephemeral=True)

    @schedule.command(name="get", description="Show one scheduled task")
    async def get(
        self,
        ctx: discord.ApplicationContext,
        task: Option(int, "Task number from /schedule list", min_value=1),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        try:
            found = self._task_at(task)
        except NotFoundError as exc:
            await self._respond_error(ctx, exc)
            return
        await ctx.respond(format_task_detail(task, found), ephemeral=True)

    # ------------------------------------------------------------------
    # Mutating commands
    # ------------------------------------------------------------------

    @schedule.command(name="create", description="Schedule a new task")
    async def create(
        self,
        ctx: discord.ApplicationContext,
        when: Option(str, "When to run: +1d2h, a unix time, <t:...> or an ISO-8601 timestamp"),
        action: Option(str, "Action, e.g. 'echo in <channel id> content Hello'"),
        repeat: Option(str, "How the task repeats", choices=REPEAT_CHOICES, default="none"),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        now = utcnow()
        try:
            task = ScheduledTask(
                execute_at=parse_timestamp(when, now),
                action=action_codec.decode(action),
                repeat=RepeatKind(repeat),
                created_at=now,
            )
            await self.store.create(task)
        except (ValueError, PersistenceError) as exc:
            await self._respond_error(ctx, exc)
            return
        await ctx.respond(
            f"Scheduled `{action_codec.encode(task.action)}` for {discord_timestamp(task.execute_at)}.",
            ephemeral=True,
        )

    @schedule.command(name="modify", description="Replace the action of a scheduled task")
    async def modify(
        self,
        ctx: discord.ApplicationContext,
        task: Option(int, "Task number from /schedule list", min_value=1),
        action: Option(str, "New action"),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        try:
            existing = self._task_at(task)
            updated = await self.store.modify(existing, replace(existing, action=action_codec.decode(action)))
        except (ValueError, LookupError, PersistenceError) as exc:
            await self._respond_error(ctx, exc)
            return
        await ctx.respond(f"Task #{task} now runs `{action_codec.encode(updated.action)}`.", ephemeral=True)

    @schedule.command(name="reschedule", description="Change when a scheduled task runs")
    async def reschedule(
        self,
        ctx: discord.ApplicationContext,
        task: Option(int, "Task number from /schedule list", min_value=1),
        when: Option(str, "New time: +1d2h, a unix time, <t:...> or an ISO-8601 timestamp"),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        try:
            existing = self._task_at(task)
            updated = await self.store.modify(
                existing, replace(existing, execute_at=parse_timestamp(when, utcnow()))
            )
        except (ValueError, LookupError, PersistenceError) as exc:
            await self._respond_error(ctx, exc)
            return
        await ctx.respond(f"Task #{task} now runs {discord_timestamp(updated.execute_at)}.", ephemeral=True)

    @schedule.command(name="repeat", description="Change how a scheduled task repeats")
    async def repeat(
        self,
        ctx: discord.ApplicationContext,
        task: Option(int, "Task number from /schedule list", min_value=1),
        kind: Option(str, "How the task repeats", choices=REPEAT_CHOICES),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        try:
            existing = self._task_at(task)
            new_kind = RepeatKind(kind)
            # A relative interval is only kept while the task stays relative
            interval = existing.repeat_interval if new_kind is RepeatKind.RELATIVE else None
            updated = await self.store.modify(
                existing, replace(existing, repeat=new_kind, repeat_interval=interval)
            )
        except (ValueError, LookupError, PersistenceError) as exc:
            await self._respond_error(ctx, exc)
            return
        await ctx.respond(f"Task #{task} now repeats: {updated.repeat}.", ephemeral=True)

    @schedule.command(name="delete", description="Delete a scheduled task")
    async def delete(
        self,
        ctx: discord.ApplicationContext,
        task: Option(int, "Task number from /schedule list", min_value=1),
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        try:
            existing = self._task_at(task)
            removed = await self.store.delete(existing)
        except (LookupError, PersistenceError) as exc:
            await self._respond_error(ctx, exc)
            return
        if removed:
            await ctx.respond(f"Deleted task #{task} (`{action_codec.encode(existing.action)}`).", ephemeral=True)
        else:
            await ctx.respond(f"Task #{task} already ran or was deleted.", ephemeral=True)


def setup(bot: discord.Bot, store: ScheduledTaskStore) -> None:
    bot.add_cog(ScheduleCog(bot, store))
