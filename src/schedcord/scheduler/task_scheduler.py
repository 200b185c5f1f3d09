"""
Execution of due scheduled tasks.

``SchedulerCog`` calls ``TaskScheduler.tick`` every poll interval. Each
tick walks the store's due tasks in store order and moves every one of them
through ``PENDING -> EXECUTING -> RETIRED | RESCHEDULED``:

1. claim the task under the store lock (skipped if it was deleted or
   rescheduled since the tick started);
2. run its effect through the platform client, outside the lock;
3. delete it (no repeat) or move it to its next run time (repeat). A
   one-shot task an administrator edited while it ran goes back to
   ``PENDING`` instead.

A failing effect, including one whose target vanished, is logged and the
task still advances, otherwise a permanently missing role or channel would
fire again on every tick forever.
"""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import dataclass
from typing import Callable, List, assert_never

from schedcord.datatypes.action_datatypes import AddRole, Echo, RemoveRole, ScheduledAction, Unban
from schedcord.datatypes.task_datatypes import ScheduledTask, TaskState, next_execution, utcnow
from schedcord.errors import EffectInvocationError, PersistenceError, TargetNotFoundError
from schedcord.platform.client import PlatformClient
from schedcord.scheduler import action_codec
from schedcord.scheduler.task_store import ScheduledTaskStore
from schedcord.util.logger import get_logger

logger = get_logger("task_scheduler")

DEFAULT_POLL_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    """What happened to one task during a tick."""
    task: ScheduledTask
    state: TaskState
    error: Exception | None = None
    next_execute_at: datetime.datetime | None = None


async def invoke_action(client: PlatformClient, action: ScheduledAction) -> None:
    """Perform ``action`` through ``client``."""
    match action:
        case AddRole(role_id=role_id, user_id=user_id, reason=reason):
            await client.add_role(user_id, role_id, reason)
        case RemoveRole(role_id=role_id, user_id=user_id, reason=reason):
            await client.remove_role(user_id, role_id, reason)
        case Echo(destination=destination, content=content):
            await client.send_message(destination, content)
        case Unban(user_id=user_id, reason=reason):
            await client.unban(user_id, reason)
        case _:
            assert_never(action)


class TaskScheduler:
    """
    Polls a ``ScheduledTaskStore`` and runs due tasks.

    Args:
        store: The bot's single task store.
        client: Platform client used to perform effects.
        poll_interval: Seconds between ticks.
        clock: Returns the current UTC time; replaced in tests.
    """

    def __init__(
        self,
        store: ScheduledTaskStore,
        client: PlatformClient,
        *,
        poll_interval: float = DEFAULT_POLL_SECONDS,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.store = store
        self.client = client
        self.poll_interval = poll_interval
        self._clock = clock

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, now: datetime.datetime | None = None) -> List[TaskOutcome]:
        """Run every task due at ``now`` (defaults to the clock) once."""
        now = now or self._clock()
        outcomes: List[TaskOutcome] = []

        for task in self.store.due(now):
            claimed = await self.store.claim(task, now)
            if claimed is None:
                logger.debug("[SCHEDULER] Task %s changed before execution; skipped", task.task_id)
                continue
            try:
                outcomes.append(await self._run_claimed(claimed))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.store.release(claimed)
                logger.exception("[SCHEDULER] Unexpected error while running task %s: %s", claimed.task_id, exc)

        return outcomes

    async def _run_claimed(self, claimed: ScheduledTask) -> TaskOutcome:
        description = action_codec.encode(claimed.action)
        logger.debug("[SCHEDULER] Executing task %s: %s", claimed.task_id, description)

        error: Exception | None = None
        try:
            await invoke_action(self.client, claimed.action)
        except asyncio.CancelledError:
            self.store.release(claimed)
            raise
        except TargetNotFoundError as exc:
            error = exc
            logger.warning("[SCHEDULER] Target of task %s no longer exists (%s): %s", claimed.task_id, description, exc)
        except Exception as exc:
            error = exc if isinstance(exc, EffectInvocationError) else EffectInvocationError(str(exc))
            logger.error("[SCHEDULER] Task %s failed (%s): %s", claimed.task_id, description, exc)
        else:
            logger.info("[SCHEDULER] Executed task %s: %s", claimed.task_id, description)

        try:
            if not claimed.repeats:
                kept = await self.store.retire(claimed)
                if kept is not None:
                    logger.debug("[SCHEDULER] Task %s was edited while running, kept for %s", claimed.task_id, kept.execute_at.isoformat())
                    return TaskOutcome(claimed, TaskState.PENDING, error, kept.execute_at)
                return TaskOutcome(claimed, TaskState.RETIRED, error)

            next_at = next_execution(claimed)
            moved = await self.store.reschedule(claimed, next_at)
            if moved is not None:
                logger.debug("[SCHEDULER] Task %s rescheduled for %s", claimed.task_id, moved.execute_at.isoformat())
            return TaskOutcome(claimed, TaskState.RESCHEDULED, error, moved.execute_at if moved else None)
        except PersistenceError as exc:
            # The claim is released; the task will be picked up again next tick.
            logger.error("[SCHEDULER] Could not update task %s after execution: %s", claimed.task_id, exc)
            return TaskOutcome(claimed, TaskState.EXECUTING, exc)
