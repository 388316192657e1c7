"""Shared repository layer for the stream tracker."""

from .guild_config import GuildConfigRepository
from .stream_activity import ActivityStore, StreamActivityRepository

__all__ = [
    "ActivityStore",
    "GuildConfigRepository",
    "StreamActivityRepository",
]
