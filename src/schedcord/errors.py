"""Exception types raised by the scheduling and departure components."""


class SchedcordError(Exception):
    """Base class for every error raised by schedcord."""


class MalformedActionError(SchedcordError, ValueError):
    """An action string could not be decoded. The message is safe to show users."""


class NotFoundError(SchedcordError, LookupError):
    """A task targeted by modify/delete is no longer in the store."""


class PersistenceError(SchedcordError):
    """Writing the task list to durable storage failed."""


class EffectInvocationError(SchedcordError):
    """A platform call made while executing a task failed."""


class TargetNotFoundError(EffectInvocationError):
    """The role, channel or user an action refers to no longer exists."""
