"""
Ordered, persistent collection of scheduled tasks.

One ``ScheduledTaskStore`` instance owns the task list for the whole bot. The
scheduler loop and the administrative commands all receive that instance and
go through its API; nothing else touches the list.

Consistency rules
-----------------
* Every mutation builds a new tuple, persists it in full and only then swaps
  it in. A failed write raises ``PersistenceError`` and leaves the in-memory
  list exactly as it was, so memory and disk never disagree.
* Mutations (and the scheduler's claim/retire/reschedule steps) are
  serialised by one ``asyncio.Lock``.
* Reads return the current immutable tuple and never take the lock, so a
  listing can run while a write is in progress and still see a whole list.
"""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Protocol, Sequence, Tuple

from schedcord.datatypes.action_datatypes import ActionKind
from schedcord.datatypes.task_datatypes import ScheduledTask, next_execution
from schedcord.errors import NotFoundError, PersistenceError
from schedcord.scheduler import action_codec
from schedcord.util.logger import get_logger

logger = get_logger("task_store")

TaskPredicate = Callable[[ScheduledTask], bool]


class TaskPersistence(Protocol):
    """Durable backing for the store (see ``ScheduledTaskRepo``)."""

    async def replace_all(self, tasks: Sequence[ScheduledTask]) -> None: ...

    async def load_all(self) -> List[ScheduledTask]: ...


class ScheduledTaskStore:
    """
    Owner of the scheduled task list.

    Args:
        persistence: Object that writes and reloads the full list.
    """

    def __init__(self, persistence: TaskPersistence) -> None:
        self._persistence = persistence
        self._tasks: Tuple[ScheduledTask, ...] = ()
        self._lock = asyncio.Lock()
        self._executing: set[str] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Replace the in-memory list with the persisted one. Returns the count."""
        async with self._lock:
            try:
                tasks = await self._persistence.load_all()
            except Exception as exc:
                raise PersistenceError(f"Failed to load scheduled tasks: {exc}") from exc
            self._tasks = tuple(tasks)
        logger.info("[TASK STORE] Loaded %d scheduled tasks", len(self._tasks))
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[ScheduledTask, ...]:
        """The whole list in store order. Positions double as display ordinals."""
        return self._tasks

    def query(self, predicate: TaskPredicate) -> List[ScheduledTask]:
        """All tasks for which ``predicate`` is true, in store order."""
        return [task for task in self._tasks if predicate(task)]

    def get(self, task_id: str) -> ScheduledTask | None:
        for task in self._tasks:
            if task.task_id == task_id:
                return task
        return None

    def count_by_kind(self) -> Dict[ActionKind, int]:
        counts = {kind: 0 for kind in ActionKind}
        for task in self._tasks:
            counts[task.action.kind] += 1
        return counts

    def __len__(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, task: ScheduledTask) -> ScheduledTask:
        """
        Append ``task`` and persist. The returned task is the handle for
        later ``modify``/``delete`` calls.

        Raises:
            PersistenceError: If the write failed; the task was not added.
        """
        async with self._lock:
            await self._commit(self._tasks + (task,))
        logger.info(
            "[TASK STORE] Created task %s (%s) due %s",
            task.task_id, action_codec.encode(task.action), task.execute_at.isoformat(),
        )
        return task

    async def modify(self, existing: ScheduledTask, new: ScheduledTask) -> ScheduledTask:
        """
        Replace ``existing`` with ``new`` in place.

        ``task_id`` and ``created_at`` of the existing task are kept.

        Raises:
            NotFoundError: ``existing`` already ran or was deleted.
            PersistenceError: If the write failed; nothing changed.
        """
        async with self._lock:
            index = self._index_of(existing.task_id)
            if index is None:
                raise NotFoundError(f"Scheduled task {existing.task_id} no longer exists.")
            updated = replace(new, task_id=existing.task_id, created_at=self._tasks[index].created_at)
            tasks = list(self._tasks)
            tasks[index] = updated
            await self._commit(tuple(tasks))
        logger.info("[TASK STORE] Modified task %s", updated.task_id)
        return updated

    async def delete(self, task: ScheduledTask) -> bool:
        """
        Remove ``task`` and persist. Deleting a task that is already gone is
        not an error; the return value says whether anything was removed.

        Raises:
            PersistenceError: If the write failed; the task is still present.
        """
        async with self._lock:
            removed = await self._remove_locked([task.task_id])
        if removed:
            logger.info("[TASK STORE] Deleted task %s", task.task_id)
        return bool(removed)

    async def delete_where(self, predicate: TaskPredicate) -> List[ScheduledTask]:
        """Remove every task matching ``predicate`` with a single write."""
        async with self._lock:
            victims = [task for task in self._tasks if predicate(task)]
            removed = await self._remove_locked([task.task_id for task in victims])
        if removed:
            logger.info("[TASK STORE] Deleted %d tasks", len(removed))
        return removed

    # ------------------------------------------------------------------
    # Scheduler hooks
    # ------------------------------------------------------------------

    def due(self, now: datetime.datetime) -> List[ScheduledTask]:
        """Tasks due at ``now`` that are not already executing, in store order."""
        return [t for t in self._tasks if t.is_due(now) and t.task_id not in self._executing]

    async def claim(self, task: ScheduledTask, now: datetime.datetime) -> ScheduledTask | None:
        """
        Mark a due task as executing.

        Returns the current version of the task, or None if since the tick
        started it was deleted, rescheduled into the future, or claimed by
        another execution.
        """
        async with self._lock:
            index = self._index_of(task.task_id)
            if index is None or task.task_id in self._executing:
                return None
            current = self._tasks[index]
            if not current.is_due(now):
                return None
            self._executing.add(task.task_id)
            return current

    async def retire(self, claimed: ScheduledTask) -> ScheduledTask | None:
        """
        Remove a finished non-repeating task and release its claim.

        An administrator's edit made while the task was executing is kept: a
        changed ``execute_at`` leaves the task pending at that time, and a
        switch to a repeating kind moves it to its next run. Returns the kept
        task, or None when the task is gone.
        """
        async with self._lock:
            try:
                index = self._index_of(claimed.task_id)
                if index is None:
                    return None
                current = self._tasks[index]
                if current.execute_at != claimed.execute_at:
                    return current
                if current.repeats:
                    moved = replace(current, execute_at=next_execution(current))
                    await self._commit(self._tasks[:index] + self._tasks[index + 1:] + (moved,))
                    return moved
                await self._remove_locked([claimed.task_id])
                return None
            finally:
                self._executing.discard(claimed.task_id)

    async def reschedule(self, claimed: ScheduledTask, next_at: datetime.datetime) -> ScheduledTask | None:
        """
        Move a finished repeating task to ``next_at`` and re-insert it at the
        end of the list.

        If the task was deleted while executing it stays deleted. If an
        administrator changed its ``execute_at`` meanwhile, that time wins and
        the task is left where it is. If it was switched to no repeat, this run
        was its last and it is removed.
        """
        async with self._lock:
            try:
                index = self._index_of(claimed.task_id)
                if index is None:
                    return None
                current = self._tasks[index]
                if current.execute_at != claimed.execute_at:
                    return current
                if not current.repeats:
                    await self._remove_locked([claimed.task_id])
                    return None
                moved = replace(current, execute_at=next_at)
                tasks = self._tasks[:index] + self._tasks[index + 1:] + (moved,)
                await self._commit(tasks)
                return moved
            finally:
                self._executing.discard(claimed.task_id)

    def release(self, claimed: ScheduledTask) -> None:
        """Drop an execution claim without changing the task."""
        self._executing.discard(claimed.task_id)

    def is_executing(self, task: ScheduledTask) -> bool:
        return task.task_id in self._executing

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.task_id == task_id:
                return index
        return None

    async def _remove_locked(self, task_ids: Iterable[str]) -> List[ScheduledTask]:
        wanted = set(task_ids)
        removed = [task for task in self._tasks if task.task_id in wanted]
        if not removed:
            return []
        await self._commit(tuple(task for task in self._tasks if task.task_id not in wanted))
        return removed

    async def _commit(self, tasks: Tuple[ScheduledTask, ...]) -> None:
        """Persist ``tasks`` and make them current. Caller holds the lock."""
        try:
            await self._persistence.replace_all(tasks)
        except Exception as exc:
            logger.error("[TASK STORE] Failed to persist scheduled tasks: %s", exc)
            raise PersistenceError(f"Failed to persist scheduled tasks: {exc}") from exc
        self._tasks = tasks
