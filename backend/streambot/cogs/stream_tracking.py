"""Voice-state listener that feeds the stream tracker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from shared.errors import StoreUnavailable
from streambot.embeds import welcome_embed
from streambot.services.tracker import PresenceChange, SessionTransition, TransitionKind

if TYPE_CHECKING:
    from streambot.bot import StreamBot

logger = logging.getLogger(__name__)


def presence_change(
    member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
) -> PresenceChange:
    old_channel, new_channel = before.channel, after.channel
    return PresenceChange(
        user_id=member.id,
        username=member.display_name,
        guild_id=member.guild.id,
        guild_name=member.guild.name,
        old_channel_id=old_channel.id if old_channel else None,
        old_channel_name=old_channel.name if old_channel else None,
        new_channel_id=new_channel.id if new_channel else None,
        new_channel_name=new_channel.name if new_channel else None,
        was_streaming=bool(before.self_stream) and old_channel is not None,
        is_streaming=bool(after.self_stream) and new_channel is not None,
    )


class StreamTracking(commands.Cog):
    """Tracks go-live sessions from voice-state updates"""

    def __init__(self, bot: StreamBot):
        self.bot = bot

    @commands.Cog.listener()
    async def on_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        if member.bot:
            return
        change = presence_change(member, before, after)
        if not change.was_streaming and not change.is_streaming:
            return
        await self.handle_change(change)

    async def handle_change(self, change: PresenceChange) -> None:
        tracker, sink = self.bot.tracker, self.bot.sink
        if tracker is None or sink is None or self.bot.guild_configs is None:
            return

        try:
            if not await self.bot.guild_configs.is_tracking_enabled(change.guild_id):
                # Still close what was opened before tracking was switched off
                if change.was_streaming:
                    await tracker.end_session(change.user_id, change.guild_id)
                return
            transitions = await tracker.apply_presence(change)
        except StoreUnavailable as e:
            logger.warning(f"Dropped voice event for {change.user_id} in {change.guild_id}: {e}")
            return

        for transition in transitions:
            await self._announce(transition)

    async def _announce(self, transition: SessionTransition) -> None:
        tracker, sink = self.bot.tracker, self.bot.sink
        if tracker is None or sink is None:
            return

        if transition.kind is TransitionKind.ENDED and transition.closed is not None:
            await sink.session_ended(
                transition.guild_id, transition.user_id, transition.username, transition.closed
            )
            return

        ref = await sink.session_started(
            transition.guild_id,
            transition.user_id,
            transition.username,
            transition.channel_id,
            transition.channel_name,
        )
        if ref is None:
            return
        try:
            await tracker.attach_notification(
                transition.user_id, transition.guild_id, ref, started_at=transition.started_at
            )
        except StoreUnavailable as e:
            logger.warning(f"Could not store notification reference for {transition.user_id}: {e}")

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info(f"Joined guild {guild.name} ({guild.id}, {guild.member_count} members)")
        if self.bot.guild_configs is None:
            return
        try:
            config = await self.bot.guild_configs.get_or_create(guild.id, guild.name)
        except StoreUnavailable as e:
            logger.warning(f"Could not create config for {guild.id}: {e}")
            return

        channel = guild.system_channel
        if channel is None or not channel.permissions_for(guild.me).send_messages:
            return
        try:
            await channel.send(embed=welcome_embed(config.prefix))
        except discord.HTTPException as e:
            logger.warning(f"Could not send welcome message to {guild.id}: {e}")

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info(f"Removed from guild {guild.name} ({guild.id})")


async def setup(bot: StreamBot) -> None:
    await bot.add_cog(StreamTracking(bot))
