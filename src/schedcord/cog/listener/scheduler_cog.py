"""Background scheduler cog.

Drives ``TaskScheduler.tick`` from a ``discord.ext.tasks`` loop. The task
list itself lives in the shared ``ScheduledTaskStore``; this cog only owns
the timer.
"""

from __future__ import annotations

import asyncio

import discord
from discord.ext import commands, tasks

from schedcord.scheduler.task_scheduler import TaskScheduler
from schedcord.util.logger import get_logger

logger = get_logger("scheduler_cog")


class SchedulerCog(commands.Cog):
    """
    Runs due scheduled tasks every ``scheduler.poll_interval`` seconds.

    Because the store is persisted, tasks that fell due while the bot was
    offline run on the first tick after ``on_ready``.
    """

    def __init__(self, bot: discord.Bot, scheduler: TaskScheduler) -> None:
        self.bot = bot
        self.scheduler = scheduler

    # ------------------------------------------------------------------
    # Cog lifecycle
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        self._poll_task.change_interval(seconds=self.scheduler.poll_interval)
        if not self._poll_task.is_running():
            self._poll_task.start()
            logger.info(
                "[SCHEDULER] Started (interval=%.1fs, %d tasks)",
                self.scheduler.poll_interval, len(self.scheduler.store),
            )

    def cog_unload(self) -> None:
        self._poll_task.cancel()
        logger.info("[SCHEDULER] Stopped")

    # ------------------------------------------------------------------
    # Polling loop
    # ------------------------------------------------------------------

    @tasks.loop(seconds=10)  # real interval set in on_ready
    async def _poll_task(self) -> None:
        try:
            outcomes = await self.scheduler.tick()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[SCHEDULER] Unexpected error during tick: %s", exc)
            return
        if outcomes:
            logger.debug("[SCHEDULER] Tick processed %d tasks", len(outcomes))

    @_poll_task.before_loop
    async def _before_poll(self) -> None:
        await self.bot.wait_until_ready()


def setup(bot: discord.Bot, scheduler: TaskScheduler) -> None:
    bot.add_cog(SchedulerCog(bot, scheduler))
