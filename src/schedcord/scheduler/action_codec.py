"""
Textual form of scheduled actions.

Administrators author and read tasks as short command-like strings::

    addrole <roleId> to <userId> because <reason>
    removerole <roleId> from <userId> because <reason>
    echo in <channelOrUserId> content <text>
    unban <userId> because <reason>

Verbs and keywords are matched case-insensitively and separated by any
whitespace. The trailing freeform field consumes the rest of the input
verbatim after a single separating space, which is what makes
``decode(encode(action)) == action`` hold for arbitrary reason/content text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from schedcord.datatypes.action_datatypes import (
    ActionKind,
    AddRole,
    Echo,
    RemoveRole,
    ScheduledAction,
    Unban,
)
from schedcord.datatypes.discord_datatypes import ChannelID, RoleID, Snowflake, UserID
from schedcord.errors import MalformedActionError


@dataclass(frozen=True)
class _Keyword:
    word: str


@dataclass(frozen=True)
class _Id:
    attr: str
    id_type: type[Snowflake]


@dataclass(frozen=True)
class _Text:
    attr: str
    required: bool = False


_Field = _Keyword | _Id | _Text


@dataclass(frozen=True)
class _Form:
    build: Callable[..., ScheduledAction]
    fields: Tuple[_Field, ...]

    @property
    def usage(self) -> str:
        parts = []
        for f in self.fields:
            match f:
                case _Keyword(word=word):
                    parts.append(word)
                case _Id(attr=attr) | _Text(attr=attr):
                    parts.append(f"<{attr}>")
        return " ".join(parts)


_FORMS: Dict[ActionKind, _Form] = {
    ActionKind.ADD_ROLE: _Form(AddRole, (
        _Id("role_id", RoleID), _Keyword("to"), _Id("user_id", UserID),
        _Keyword("because"), _Text("reason"),
    )),
    ActionKind.REMOVE_ROLE: _Form(RemoveRole, (
        _Id("role_id", RoleID), _Keyword("from"), _Id("user_id", UserID),
        _Keyword("because"), _Text("reason"),
    )),
    ActionKind.ECHO: _Form(Echo, (
        _Keyword("in"), _Id("destination", ChannelID),
        _Keyword("content"), _Text("content", required=True),
    )),
    ActionKind.UNBAN: _Form(Unban, (
        _Id("user_id", UserID), _Keyword("because"), _Text("reason"),
    )),
}


def usage(kind: ActionKind) -> str:
    """Return the grammar line for one action kind, e.g. for help text."""
    return f"{kind.value} {_FORMS[kind].usage}"


class _Cursor:
    """Whitespace tokenizer that can hand back the untouched remainder."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def next_token(self) -> str | None:
        text, end = self.text, len(self.text)
        while self.pos < end and text[self.pos].isspace():
            self.pos += 1
        if self.pos >= end:
            return None
        start = self.pos
        while self.pos < end and not text[self.pos].isspace():
            self.pos += 1
        return text[start:self.pos]

    def remainder(self) -> str:
        if self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        rest = self.text[self.pos:]
        self.pos = len(self.text)
        return rest


def encode(action: ScheduledAction) -> str:
    """Render an action in its textual form."""
    form = _FORMS[action.kind]
    parts = [action.kind.value]
    for f in form.fields:
        match f:
            case _Keyword(word=word):
                parts.append(word)
            case _Id(attr=attr):
                parts.append(str(getattr(action, attr)))
            case _Text(attr=attr):
                parts.append(getattr(action, attr))
    return " ".join(parts)


def decode(text: str) -> ScheduledAction:
    """
    Parse an action string.

    Raises:
        MalformedActionError: Unknown verb, missing field or keyword, blank
            echo content, or an id that is not an unsigned 64-bit integer.
    """
    cursor = _Cursor(text)
    verb = cursor.next_token()
    if verb is None:
        raise MalformedActionError("Empty action string.")

    try:
        kind = ActionKind(verb.lower())
    except ValueError:
        known = ", ".join(k.value for k in ActionKind)
        raise MalformedActionError(f"Unknown action '{verb}'. Expected one of: {known}.") from None

    form = _FORMS[kind]
    values: Dict[str, object] = {}
    for f in form.fields:
        match f:
            case _Keyword(word=word):
                token = cursor.next_token()
                if token is None or token.lower() != word:
                    raise MalformedActionError(
                        f"Expected '{word}' in `{usage(kind)}`, got {token!r}."
                    )
            case _Id(attr=attr, id_type=id_type):
                token = cursor.next_token()
                if token is None:
                    raise MalformedActionError(f"Missing <{attr}> in `{usage(kind)}`.")
                try:
                    values[attr] = id_type(token)
                except ValueError:
                    raise MalformedActionError(
                        f"<{attr}> must be an unsigned integer id, got {token!r}."
                    ) from None
            case _Text(attr=attr, required=required):
                rest = cursor.remainder()
                if required and not rest.strip():
                    raise MalformedActionError(f"Missing <{attr}> in `{usage(kind)}`.")
                values[attr] = rest

    return form.build(**values)
