"""Exception taxonomy shared by the store, the tracker and the bot."""

from __future__ import annotations


class StreamTrackerError(Exception):
    """Base class for all stream tracker errors."""


class StoreUnavailable(StreamTrackerError):
    """The backing store is unreachable or timed out."""


class NotificationSinkFailure(StreamTrackerError):
    """An outbound notification could not be delivered as requested."""


class InvalidTimezone(StreamTrackerError, ValueError):
    """A guild configured a timezone that is not a known IANA identifier."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown timezone: {name!r}")
        self.name = name


class ReconciliationFailure(StreamTrackerError):
    """The live voice state of one member could not be resolved at startup."""

    def __init__(self, user_id: int, guild_id: int, reason: str) -> None:
        super().__init__(f"Cannot resolve voice state for {user_id} in {guild_id}: {reason}")
        self.user_id = user_id
        self.guild_id = guild_id


class ReportGenerationFailure(StreamTrackerError):
    """Building or delivering one guild's scheduled report failed."""

    def __init__(self, guild_id: int, kind: str, reason: str) -> None:
        super().__init__(f"{kind} report for guild {guild_id} failed: {reason}")
        self.guild_id = guild_id
        self.kind = kind
