"""
Schedulable action variants.

The four actions form a closed set: every consumer dispatches on them with a
``match`` statement and ends with ``assert_never`` so a new variant cannot be
added without updating each dispatch site.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union, assert_never

from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, UserID


class ActionKind(Enum):
    """Tag of a scheduled action, also used as the persisted discriminator."""

    ADD_ROLE = "addrole"
    REMOVE_ROLE = "removerole"
    ECHO = "echo"
    UNBAN = "unban"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class AddRole:
    """Give ``role_id`` to ``user_id``."""
    role_id: RoleID
    user_id: UserID
    reason: str = ""

    @property
    def kind(self) -> ActionKind:
        return ActionKind.ADD_ROLE


@dataclass(frozen=True, slots=True)
class RemoveRole:
    """Take ``role_id`` away from ``user_id``."""
    role_id: RoleID
    user_id: UserID
    reason: str = ""

    @property
    def kind(self) -> ActionKind:
        return ActionKind.REMOVE_ROLE


@dataclass(frozen=True, slots=True)
class Echo:
    """Send ``content`` to a channel, or to a user by DM."""
    destination: ChannelID
    content: str

    @property
    def kind(self) -> ActionKind:
        return ActionKind.ECHO


@dataclass(frozen=True, slots=True)
class Unban:
    """Lift the ban on ``user_id``."""
    user_id: UserID
    reason: str = ""

    @property
    def kind(self) -> ActionKind:
        return ActionKind.UNBAN


ScheduledAction = Union[AddRole, RemoveRole, Echo, Unban]


def target_user_id(action: ScheduledAction) -> int | None:
    """
    Return the id of the user an action is aimed at, if any.

    Role and unban actions target their ``user_id``. Echo actions target a
    user only when addressed to one; the destination id is returned and the
    caller decides whether it names a user.
    """
    match action:
        case AddRole(user_id=user_id) | RemoveRole(user_id=user_id) | Unban(user_id=user_id):
            return user_id.to_int()
        case Echo(destination=destination):
            return destination.to_int()
        case _:
            assert_never(action)
