"""
Type-safe wrapper classes for Discord identifiers.

This module provides type-safe wrappers for Discord snowflake IDs so that a
role id is never silently passed where a user id is expected. Every wrapper
stores its value as a string for JSON parity and converts to ``int`` for API
calls.
"""

from __future__ import annotations

from typing import Union

# Snowflakes are unsigned 64-bit integers.
SNOWFLAKE_MAX = (1 << 64) - 1


class Snowflake:
    """
    Base class for typed Discord snowflake IDs.

    Subclasses only differ by name; two ids compare equal when they are the
    same wrapper type with the same value, or when compared against the raw
    ``int``/``str`` form of that value.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> uid.to_int()
        123456789012345678
        >>> str(uid)
        '123456789012345678'
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Initialize from a string, int, or another snowflake wrapper.

        Raises:
            ValueError: If the value is not an unsigned 64-bit integer.
        """
        if isinstance(value, Snowflake):
            number = value.to_int()
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        elif isinstance(value, int):
            number = value
        elif isinstance(value, str):
            text = value.strip()
            if not (text.isascii() and text.isdigit()):
                raise ValueError(f"Invalid {type(self).__name__}: {value!r}")
            number = int(text)
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

        if number < 0 or number > SNOWFLAKE_MAX:
            raise ValueError(f"{type(self).__name__} out of range: {number}")
        self._value = str(number)

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    @classmethod
    def from_object(cls, obj):
        """Create an id from any Discord model exposing an ``id`` attribute."""
        return cls(obj.id)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Discord user snowflake."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member) -> "UserID":
        return cls(member.id)


class RoleID(Snowflake):
    """Discord role snowflake."""

    __slots__ = ()


class ChannelID(Snowflake):
    """
    Destination snowflake for outgoing messages.

    Usually a text channel, but echo tasks may also address a user directly,
    in which case the message is delivered as a DM.
    """

    __slots__ = ()


class GuildID(Snowflake):
    """Discord guild snowflake."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild) -> "GuildID":
        return cls(guild.id)
