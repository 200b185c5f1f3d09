import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from schedcord.datatypes.audit_datatypes import AuditActionKind
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.errors import EffectInvocationError, TargetNotFoundError
from schedcord.platform.discord_client import DiscordPlatformClient


def _http_error(cls, status):
    return cls(SimpleNamespace(status=status, reason="error"), "failed")


def _bot(guild=None):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    bot.fetch_channel = AsyncMock()
    bot.fetch_user = AsyncMock()
    return bot


def _guild(member=None, role=None):
    guild = MagicMock()
    guild.name = "Test Guild"
    guild.get_member.return_value = member
    guild.fetch_member = AsyncMock(side_effect=_http_error(discord.NotFound, 404))
    guild.get_role.return_value = role
    guild.unban = AsyncMock()
    return guild


@pytest.mark.asyncio
async def test_add_role_uses_cached_member():
    member = MagicMock(add_roles=AsyncMock())
    role = object()
    client = DiscordPlatformClient(_bot(_guild(member, role)), 1)

    await client.add_role(UserID(2), RoleID(3), "trial")

    member.add_roles.assert_awaited_once_with(role, reason="trial")


@pytest.mark.asyncio
async def test_missing_member_is_target_not_found():
    client = DiscordPlatformClient(_bot(_guild(None, object())), 1)

    with pytest.raises(TargetNotFoundError):
        await client.remove_role(UserID(2), RoleID(3), "")


@pytest.mark.asyncio
async def test_missing_role_is_target_not_found():
    member = MagicMock(remove_roles=AsyncMock())
    client = DiscordPlatformClient(_bot(_guild(member, None)), 1)

    with pytest.raises(TargetNotFoundError):
        await client.remove_role(UserID(2), RoleID(3), "")
    member.remove_roles.assert_not_awaited()


@pytest.mark.asyncio
async def test_forbidden_is_effect_error():
    member = MagicMock(add_roles=AsyncMock(side_effect=_http_error(discord.Forbidden, 403)))
    client = DiscordPlatformClient(_bot(_guild(member, object())), 1)

    with pytest.raises(EffectInvocationError) as info:
        await client.add_role(UserID(2), RoleID(3), "")
    assert not isinstance(info.value, TargetNotFoundError)


@pytest.mark.asyncio
async def test_unavailable_guild_is_effect_error():
    client = DiscordPlatformClient(_bot(None), 1)

    with pytest.raises(EffectInvocationError):
        await client.unban(UserID(2), "")


@pytest.mark.asyncio
async def test_unban_not_in_ban_list_is_target_not_found():
    guild = _guild()
    guild.unban.side_effect = _http_error(discord.NotFound, 404)
    client = DiscordPlatformClient(_bot(guild), 1)

    with pytest.raises(TargetNotFoundError):
        await client.unban(UserID(2), "served")


@pytest.mark.asyncio
async def test_send_message_falls_back_to_dm():
    user = MagicMock(send=AsyncMock())
    bot = _bot(_guild())
    bot.get_channel.return_value = None
    bot.fetch_channel.side_effect = _http_error(discord.NotFound, 404)
    bot.fetch_user.return_value = user
    client = DiscordPlatformClient(bot, 1)

    await client.send_message(ChannelID(55), "hello")

    bot.fetch_user.assert_awaited_once_with(55)
    user.send.assert_awaited_once_with("hello")


@pytest.mark.asyncio
async def test_send_message_to_unknown_id_is_target_not_found():
    bot = _bot(_guild())
    bot.get_channel.return_value = None
    bot.fetch_channel.side_effect = _http_error(discord.NotFound, 404)
    bot.fetch_user.side_effect = _http_error(discord.NotFound, 404)
    client = DiscordPlatformClient(bot, 1)

    with pytest.raises(TargetNotFoundError):
        await client.send_message(ChannelID(55), "hello")


@pytest.mark.asyncio
async def test_get_recent_audit_entries_maps_entries():
    created = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    raw = [
        SimpleNamespace(
            user=SimpleNamespace(id=7, display_name="Moddy"),
            target=SimpleNamespace(id=8),
            reason="spam",
            created_at=created,
        ),
        SimpleNamespace(user=None, target=SimpleNamespace(id=9), reason=None, created_at=created),
    ]

    async def audit_logs(limit, action):
        assert limit == 5
        assert action is discord.AuditLogAction.ban
        for entry in raw:
            yield entry

    guild = _guild()
    guild.audit_logs = audit_logs
    client = DiscordPlatformClient(_bot(guild), 1)

    entries = await client.get_recent_audit_entries(AuditActionKind.BAN, 5)

    assert len(entries) == 1
    assert entries[0].actor_id == UserID(7)
    assert entries[0].actor_name == "Moddy"
    assert entries[0].target_id == UserID(8)
    assert entries[0].reason == "spam"
    assert entries[0].action_kind is AuditActionKind.BAN
