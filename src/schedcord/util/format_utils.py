import re
from datetime import datetime, timedelta, timezone


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def discord_timestamp(value: datetime, style: str = "F") -> str:
    """Render ``value`` as Discord timestamp markup, e.g. ``<t:1700000000:R>``."""
    return f"<t:{int(ensure_utc(value).timestamp())}:{style}>"


def format_duration(delta: timedelta) -> str:
    """Compact duration label such as ``1d 2h 5m``."""
    total = int(delta.total_seconds())
    if total <= 0:
        return "0s"
    days, rest = divmod(total, 86_400)
    hours, rest = divmod(rest, 3_600)
    minutes, seconds = divmod(rest, 60)
    parts = [f"{n}{unit}" for n, unit in ((days, "d"), (hours, "h"), (minutes, "m")) if n]
    if seconds:
        parts.append(f"{seconds}s")
    return " ".join(parts)


_DURATION_PART = re.compile(r"(\d+)\s*([wdhms])", re.IGNORECASE)
_DURATION_UNITS = {"w": "weeks", "d": "days", "h": "hours", "m": "minutes", "s": "seconds"}


def parse_duration(text: str) -> timedelta:
    """
    Parse a compact duration such as ``1d2h`` or ``90m``.

    Raises:
        ValueError: If ``text`` is empty, contains anything but number/unit
            pairs, or is too large to represent.
    """
    compact = text.replace(" ", "")
    if not compact:
        raise ValueError("Empty duration")
    consumed = "".join(match.group(0) for match in _DURATION_PART.finditer(compact))
    if consumed != compact:
        raise ValueError(f"Invalid duration: {text!r}")
    kwargs: dict[str, int] = {}
    for amount, unit in _DURATION_PART.findall(compact):
        key = _DURATION_UNITS[unit.lower()]
        kwargs[key] = kwargs.get(key, 0) + int(amount)
    try:
        return timedelta(**kwargs)
    except OverflowError:
        raise ValueError(f"Duration too large: {text!r}") from None


def parse_timestamp(text: str, now: datetime) -> datetime:
    """
    Parse an execution time given by an administrator.

    Accepts ``+<duration>`` relative to ``now`` (``+1d2h``), a Unix epoch in
    seconds, a Discord ``<t:...>`` mention, or an ISO-8601 timestamp (naive
    values are read as UTC).

    Raises:
        ValueError: If the text matches none of these forms or lies outside
            the representable range.
    """
    value = text.strip()
    try:
        if value.startswith("+"):
            return ensure_utc(now) + parse_duration(value[1:])
        mention = re.fullmatch(r"<t:(\d+)(?::[tTdDfFR])?>", value)
        if mention:
            value = mention.group(1)
        if value.isdigit():
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        return ensure_utc(datetime.fromisoformat(value))
    except (ValueError, OverflowError, OSError):
        raise ValueError(f"Unrecognised timestamp: {text!r}") from None
