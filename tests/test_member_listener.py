import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from schedcord.cog.listener import member_listener
from schedcord.datatypes.action_datatypes import AddRole, RemoveRole, Unban
from schedcord.datatypes.audit_datatypes import DepartureCause, DepartureVerdict
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.datatypes.task_datatypes import ScheduledTask
from schedcord.repositories.member_history_repo import MemberHistory
from schedcord.scheduler.task_store import ScheduledTaskStore

UTC = datetime.timezone.utc
JOINED = datetime.datetime(2024, 9, 1, 8, 0, tzinfo=UTC)
GUILD = SimpleNamespace(id=500)


class MemoryPersistence:
    def __init__(self) -> None:
        self.saved = []

    async def replace_all(self, tasks):
        self.saved = list(tasks)

    async def load_all(self):
        return list(self.saved)


class FakeMember:
    def __init__(self, member_id=1000, name="newbie", display_name="New Bie", guild=GUILD):
        self.id = member_id
        self.name = name
        self.display_name = display_name
        self.guild = guild
        self.joined_at = JOINED
        self.created_at = JOINED - datetime.timedelta(days=400)

    def __str__(self):
        return self.name


def _config(**overrides):
    values = dict(
        guild_id=500,
        mod_log_channel_id=900,
        manage_new_member_roles=False,
        new_member_role_id=None,
        new_member_role_decay_minutes=120.0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _cog(config, *, history=None, correlator=None):
    store = ScheduledTaskStore(MemoryPersistence())
    history = history or MagicMock(get=AsyncMock(return_value=None), record_join=AsyncMock(), update_nickname=AsyncMock())
    client = AsyncMock()
    cog = member_listener.MemberListenerCog(
        SimpleNamespace(),
        store=store,
        correlator=correlator or AsyncMock(),
        history=history,
        client=client,
        config=config,
    )
    return cog, store, client, history


@pytest.mark.asyncio
async def test_join_records_history_and_posts_log():
    cog, store, client, history = _cog(_config())

    await cog.on_member_join(FakeMember())

    history.record_join.assert_awaited_once_with(UserID(1000), "newbie", "New Bie", JOINED)
    client.add_role.assert_not_awaited()
    destination, message = client.send_message.await_args.args
    assert destination == ChannelID(900)
    assert message.startswith("Join: <@1000> (`1000`), created <t:")
    assert len(store) == 0


@pytest.mark.asyncio
async def test_join_grants_role_and_schedules_removal():
    cog, store, client, _ = _cog(_config(manage_new_member_roles=True, new_member_role_id=77, new_member_role_decay_minutes=90))

    await cog.on_member_join(FakeMember())

    client.add_role.assert_awaited_once_with(UserID(1000), RoleID(77), "New user join.")
    (task,) = store.snapshot()
    assert isinstance(task.action, RemoveRole)
    assert task.action.role_id == RoleID(77)
    assert task.action.user_id == UserID(1000)
    assert task.execute_at == JOINED + datetime.timedelta(minutes=90)
    assert "New member role expires" in client.send_message.await_args.args[1]


@pytest.mark.asyncio
async def test_join_mentions_previous_joins():
    history = MagicMock(
        get=AsyncMock(return_value=MemberHistory(UserID(1000), "newbie", "x", [JOINED, JOINED])),
        record_join=AsyncMock(),
    )
    cog, _, client, _ = _cog(_config(), history=history)

    await cog.on_member_join(FakeMember())

    assert ", Joined 2 times before" in client.send_message.await_args.args[1]


@pytest.mark.asyncio
async def test_events_from_other_guilds_are_ignored():
    correlator = AsyncMock()
    cog, _, client, history = _cog(_config(), correlator=correlator)
    stranger = FakeMember(guild=SimpleNamespace(id=1))

    await cog.on_member_join(stranger)
    await cog.on_member_remove(stranger)
    await cog.on_member_unban(stranger.guild, stranger)

    history.record_join.assert_not_awaited()
    correlator.handle_departure.assert_not_awaited()
    client.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_remove_builds_record_from_history_and_posts_verdict():
    earlier = JOINED - datetime.timedelta(days=10)
    history = MagicMock(get=AsyncMock(return_value=MemberHistory(UserID(1000), "newbie", "Old Nick", [earlier, JOINED])))
    correlator = AsyncMock()
    correlator.handle_departure.return_value = DepartureVerdict(
        cause=DepartureCause.LEFT, entry=None, message="Leave: line", file_message="Leave: file line"
    )
    cog, _, client, _ = _cog(_config(), history=history, correlator=correlator)

    await cog.on_member_remove(FakeMember())

    record = correlator.handle_departure.await_args.args[0]
    assert record.user_id == UserID(1000)
    assert record.last_known_nickname == "Old Nick"
    assert record.join_history == [earlier, JOINED]
    client.send_message.assert_awaited_once_with(ChannelID(900), "Leave: line")


@pytest.mark.asyncio
async def test_remove_without_history_uses_unknown_nickname():
    correlator = AsyncMock()
    correlator.handle_departure.return_value = DepartureVerdict(
        cause=DepartureCause.LEFT, entry=None, message="m", file_message="f"
    )
    cog, _, _, _ = _cog(_config(mod_log_channel_id=None), correlator=correlator)

    await cog.on_member_remove(FakeMember())

    record = correlator.handle_departure.await_args.args[0]
    assert record.last_known_nickname == "<UNKNOWN>"
    assert record.join_history == [JOINED]


@pytest.mark.asyncio
async def test_unban_cancels_only_pending_unbans_for_that_user():
    cog, store, _, _ = _cog(_config())
    keep = [AddRole(RoleID(1), UserID(1000), "x"), Unban(UserID(2000), "other user")]
    for action in [Unban(UserID(1000), "scheduled"), *keep]:
        await store.create(ScheduledTask(execute_at=JOINED, action=action, created_at=JOINED))

    await cog.on_member_unban(GUILD, FakeMember())

    assert [t.action for t in store.snapshot()] == keep


@pytest.mark.asyncio
async def test_member_update_stores_new_nickname():
    cog, _, _, history = _cog(_config())
    before = FakeMember(display_name="Before")
    after = FakeMember(display_name="After")

    await cog.on_member_update(before, after)
    await cog.on_member_update(after, after)

    history.update_nickname.assert_awaited_once_with(UserID(1000), "newbie", "After")
