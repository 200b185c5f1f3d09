import pytest

from schedcord.datatypes.action_datatypes import ActionKind, AddRole, Echo, RemoveRole, Unban
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID
from schedcord.errors import MalformedActionError
from schedcord.scheduler import action_codec


@pytest.mark.parametrize(
    "action",
    [
        AddRole(RoleID(111), UserID(222), "trial member"),
        RemoveRole(RoleID(111), UserID(222), ""),
        Echo(ChannelID(42), "  two leading spaces and\na second line"),
        Unban(UserID(18446744073709551615), "ban expired"),
    ],
)
def test_decode_inverts_encode(action):
    assert action_codec.decode(action_codec.encode(action)) == action


def test_encode_uses_documented_grammar():
    assert action_codec.encode(AddRole(RoleID(1), UserID(2), "why")) == "addrole 1 to 2 because why"
    assert action_codec.encode(RemoveRole(RoleID(1), UserID(2), "why")) == "removerole 1 from 2 because why"
    assert action_codec.encode(Echo(ChannelID(3), "hello")) == "echo in 3 content hello"
    assert action_codec.encode(Unban(UserID(4), "why")) == "unban 4 because why"


def test_verbs_and_keywords_are_case_insensitive():
    action = action_codec.decode("AddRole 1 TO 2 Because Some Reason")
    assert action == AddRole(RoleID(1), UserID(2), "Some Reason")


def test_freeform_text_is_kept_verbatim():
    action = action_codec.decode("echo in 3 content   spaced   out  ")
    assert action == Echo(ChannelID(3), "  spaced   out  ")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "kick 1 because no",
        "addrole 1 2 because missing keyword",
        "addrole 1 to",
        "removerole 1 to 2 because wrong keyword",
        "echo 3 content hi",
        "echo in 42 content",
        "echo in 42 content   ",
        "unban",
        "unban notanid because x",
        "unban -5 because x",
        "unban 18446744073709551616 because too big",
    ],
)
def test_malformed_input_raises(text):
    with pytest.raises(MalformedActionError):
        action_codec.decode(text)


def test_malformed_action_error_is_a_value_error():
    with pytest.raises(ValueError):
        action_codec.decode("nope")


def test_usage_lists_fields():
    assert action_codec.usage(ActionKind.ECHO) == "echo in <destination> content <content>"
