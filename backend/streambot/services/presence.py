"""Live voice-state lookups used by crash recovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import discord

from shared.errors import ReconciliationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceSnapshot:
    channel_id: int
    is_streaming: bool


class PresenceOracle(Protocol):
    def is_guild_known(self, guild_id: int) -> bool: ...

    async def resolve_current_voice_state(self, user_id: int, guild_id: int) -> VoiceSnapshot | None: ...


class DiscordPresenceOracle:
    """Reads voice state from the gateway cache, falling back to ``fetch_member``.

    Returns ``None`` when the member is not in a voice channel. Raises
    ``ReconciliationFailure`` when the member cannot be looked up at all.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    def is_guild_known(self, guild_id: int) -> bool:
        guild = self.client.get_guild(guild_id)
        return guild is not None and not guild.unavailable

    async def resolve_current_voice_state(self, user_id: int, guild_id: int) -> VoiceSnapshot | None:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise ReconciliationFailure(user_id, guild_id, "guild not in cache")

        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound as e:
                raise ReconciliationFailure(user_id, guild_id, "member left the guild") from e
            except discord.HTTPException as e:
                raise ReconciliationFailure(user_id, guild_id, f"fetch_member failed: {e}") from e

        # Members fetched over HTTP carry no voice state and read as "not in voice"
        voice = member.voice
        if voice is None or voice.channel is None:
            return None
        return VoiceSnapshot(channel_id=voice.channel.id, is_streaming=bool(voice.self_stream))
