import datetime
from unittest.mock import AsyncMock

import pytest

from schedcord.datatypes.action_datatypes import AddRole, Echo, RemoveRole, Unban
from schedcord.datatypes.audit_datatypes import AuditActionKind, AuditEntry, DepartureCause, DepartureRecord
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.datatypes.task_datatypes import ScheduledTask
from schedcord.errors import EffectInvocationError
from schedcord.moderation.departure_correlator import DepartureCorrelator, format_departure
from schedcord.scheduler.task_store import ScheduledTaskStore

UTC = datetime.timezone.utc
NOW = datetime.datetime(2024, 8, 1, 18, 0, tzinfo=UTC)
U = UserID(1000)
MOD = UserID(77)


class MemoryPersistence:
    def __init__(self) -> None:
        self.saved = []

    async def replace_all(self, tasks):
        self.saved = list(tasks)

    async def load_all(self):
        return list(self.saved)


def _entry(kind, seconds_ago, target=U, reason="rule 3"):
    return AuditEntry(
        actor_id=MOD,
        actor_name="Moddy",
        target_id=target,
        reason=reason,
        created_at=NOW - datetime.timedelta(seconds=seconds_ago),
        action_kind=kind,
    )


def _client(kicks=(), bans=()):
    client = AsyncMock()
    entries = {AuditActionKind.KICK: list(kicks), AuditActionKind.BAN: list(bans)}

    async def fetch(kind, limit):
        return entries[kind][:limit]

    client.get_recent_audit_entries.side_effect = fetch
    return client


def _record():
    return DepartureRecord(
        user_id=U,
        username="leaver",
        last_known_nickname="Leaves A Lot",
        join_history=[NOW - datetime.timedelta(days=30), NOW - datetime.timedelta(days=2)],
    )


@pytest.mark.asyncio
async def test_fresh_ban_beats_older_kick():
    client = _client(kicks=[_entry(AuditActionKind.KICK, 30)], bans=[_entry(AuditActionKind.BAN, 5)])
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    cause, entry = await correlator.classify(U, NOW)

    assert cause is DepartureCause.BANNED
    assert entry.action_kind is AuditActionKind.BAN


@pytest.mark.asyncio
async def test_kick_inside_window_is_reported():
    client = _client(kicks=[_entry(AuditActionKind.KICK, 99)])
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    cause, _ = await correlator.classify(U, NOW)

    assert cause is DepartureCause.KICKED


@pytest.mark.asyncio
async def test_stale_or_foreign_entries_mean_left():
    client = _client(
        kicks=[_entry(AuditActionKind.KICK, 101)],
        bans=[_entry(AuditActionKind.BAN, 1, target=UserID(5))],
    )
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    cause, entry = await correlator.classify(U, NOW)

    assert cause is DepartureCause.LEFT
    assert entry is None


@pytest.mark.asyncio
async def test_entry_beyond_lookback_is_ignored():
    others = [_entry(AuditActionKind.BAN, 1, target=UserID(10 + i)) for i in range(5)]
    client = _client(bans=others + [_entry(AuditActionKind.BAN, 1)])
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    cause, _ = await correlator.classify(U, NOW)

    assert cause is DepartureCause.LEFT


@pytest.mark.asyncio
async def test_audit_failure_degrades_to_left():
    client = AsyncMock()
    client.get_recent_audit_entries.side_effect = EffectInvocationError("missing View Audit Log")
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    cause, _ = await correlator.classify(U, NOW)

    assert cause is DepartureCause.LEFT


@pytest.mark.asyncio
async def test_departure_cancels_user_tasks_except_unban():
    store = ScheduledTaskStore(MemoryPersistence())
    keep_unban = Unban(U, "appeal accepted")
    keep_other_user = RemoveRole(RoleID(3), UserID(2000), "someone else")
    for action in (
        AddRole(RoleID(1), U, "trial"),
        RemoveRole(RoleID(2), U, "trial over"),
        Echo(ChannelID(U.to_int()), "welcome back"),
        keep_unban,
        keep_other_user,
    ):
        await store.create(ScheduledTask(execute_at=NOW, action=action, created_at=NOW))

    correlator = DepartureCorrelator(_client(), store)
    verdict = await correlator.handle_departure(_record(), NOW)

    assert verdict.cause is DepartureCause.LEFT
    assert verdict.cancelled_tasks == 3
    assert [t.action for t in store.snapshot()] == [keep_unban, keep_other_user]


@pytest.mark.asyncio
async def test_ban_verdict_message_names_moderator_and_reason():
    client = _client(bans=[_entry(AuditActionKind.BAN, 2, reason="spam")])
    correlator = DepartureCorrelator(client, ScheduledTaskStore(MemoryPersistence()))

    verdict = await correlator.handle_departure(_record(), NOW)

    last_join = int((NOW - datetime.timedelta(days=2)).timestamp())
    assert verdict.message == (
        f"Leave (Ban): leaver (Leaves A Lot) (`1000`) joined <t:{last_join}:R>, \"spam\" by Moddy (`77`)"
    )
    assert verdict.file_message.startswith("Leave (Ban): leaver (Leaves A Lot) (`1000`) joined 2024-07-30T18:00:00+00:00")


def test_format_departure_without_join_history_or_reason():
    record = DepartureRecord(user_id=U, username="ghost")
    entry = _entry(AuditActionKind.KICK, 1, reason=None)

    message, file_message = format_departure(record, DepartureCause.KICKED, entry)

    assert message == "Leave (Kick): ghost (<UNKNOWN>) (`1000`) joined at an unknown time, \"No reason given\" by Moddy (`77`)"
    assert file_message == message
