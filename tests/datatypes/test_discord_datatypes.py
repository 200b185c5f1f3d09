import pytest

from schedcord.datatypes.discord_datatypes import (
    SNOWFLAKE_MAX,
    ChannelID,
    GuildID,
    RoleID,
    UserID,
)


class DummyObj:
    def __init__(self, id_val=None):
        self.id = id_val


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert int(u1) == 12345
    assert str(u1) == "12345"

    u2 = UserID("12345")
    assert u1 == u2

    u3 = UserID.from_int(67890)
    assert isinstance(u3, UserID)
    assert u3.to_int() == 67890

    u4 = UserID.from_user(DummyObj(id_val=111))
    assert int(u4) == 111

    # equality with raw types
    assert u4 == 111
    assert u4 == "111"

    assert len({u1, u2, u3, u4}) == 3


def test_different_wrapper_types_are_not_equal():
    assert UserID(5) != RoleID(5)
    assert ChannelID(5) != UserID(5)


@pytest.mark.parametrize("bad", ["", "abc", "-1", "12a", "１２", [], 1.5, True])
def test_invalid_values_raise_value_error(bad):
    with pytest.raises(ValueError):
        UserID(bad)  # type: ignore[arg-type]


def test_range_is_unsigned_64_bit():
    assert RoleID(SNOWFLAKE_MAX).to_int() == SNOWFLAKE_MAX
    assert RoleID(0).to_int() == 0
    with pytest.raises(ValueError):
        RoleID(SNOWFLAKE_MAX + 1)
    with pytest.raises(ValueError):
        RoleID(-1)


def test_from_object_and_from_guild():
    assert ChannelID.from_object(DummyObj(id_val=333)) == 333
    assert GuildID.from_guild(DummyObj(id_val=222)) == GuildID(222)


def test_copy_from_other_wrapper_keeps_value():
    assert UserID(RoleID(42)) == UserID(42)
    assert repr(UserID(42)) == "UserID('42')"
