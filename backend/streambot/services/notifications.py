"""Outbound notifications: stream start/end notices and scheduled reports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import discord

from shared.errors import NotificationSinkFailure, StoreUnavailable
from shared.models.report import Report
from shared.models.stream_activity import ClosedSession, NotificationRef
from streambot.embeds import report_embeds, stream_ended_embed, stream_started_embed

if TYPE_CHECKING:
    from shared.repositories.guild_config import GuildConfigRepository

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def session_started(
        self, guild_id: int, user_id: int, username: str, channel_id: int, channel_name: str
    ) -> NotificationRef | None: ...

    async def session_ended(self, guild_id: int, user_id: int, username: str, closed: ClosedSession) -> None: ...

    async def deliver_report(self, guild_id: int, channel_id: int, report: Report) -> None: ...


class DiscordNotificationSink:
    """Sends notices to each guild's configured notification channel.

    ``session_started`` and ``session_ended`` never raise: Discord errors are
    logged and dropped. ``deliver_report`` raises ``NotificationSinkFailure``
    so the scheduler can retry on its next tick.
    """

    def __init__(self, client: discord.Client, guild_configs: GuildConfigRepository) -> None:
        self.client = client
        self.guild_configs = guild_configs

    async def _notification_channel(self, guild_id: int) -> discord.TextChannel | None:
        try:
            config = await self.guild_configs.get(guild_id)
        except StoreUnavailable as e:
            logger.warning(f"Cannot read notification settings for {guild_id}: {e}")
            return None
        if config is None or not config.track_stream_activity or not config.notification_channel_id:
            return None

        channel = self.client.get_channel(config.notification_channel_id)
        if not isinstance(channel, discord.TextChannel):
            logger.warning(
                f"Notification channel {config.notification_channel_id} not found in guild {guild_id}"
            )
            return None
        return channel

    def _avatar_url(self, guild_id: int, user_id: int) -> str | None:
        guild = self.client.get_guild(guild_id)
        member = guild.get_member(user_id) if guild else None
        return member.display_avatar.url if member else None

    async def session_started(
        self, guild_id: int, user_id: int, username: str, channel_id: int, channel_name: str
    ) -> NotificationRef | None:
        channel = await self._notification_channel(guild_id)
        if channel is None:
            return None

        embed = stream_started_embed(user_id, username, channel_id, self._avatar_url(guild_id, user_id))
        try:
            message = await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning(f"Failed to send start notice for {user_id} in {guild_id}: {e}")
            return None
        return NotificationRef(message_id=message.id, channel_id=channel.id)

    async def session_ended(self, guild_id: int, user_id: int, username: str, closed: ClosedSession) -> None:
        channel = await self._notification_channel(guild_id)
        if channel is None:
            return

        embed = stream_ended_embed(user_id, username, closed, self._avatar_url(guild_id, user_id))
        try:
            await self._reply_to_start(channel, closed.notification, embed)
            return
        except NotificationSinkFailure as e:
            logger.debug(f"Sending end notice as a new message: {e}")

        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning(f"Failed to send end notice for {user_id} in {guild_id}: {e}")

    async def _reply_to_start(
        self, channel: discord.TextChannel, ref: NotificationRef | None, embed: discord.Embed
    ) -> None:
        if ref is None:
            raise NotificationSinkFailure("no start notice recorded")
        if ref.channel_id != channel.id:
            raise NotificationSinkFailure("notification channel changed since the stream started")
        try:
            original = await channel.fetch_message(ref.message_id)
            await original.reply(embed=embed, mention_author=False)
        except discord.HTTPException as e:
            raise NotificationSinkFailure(f"cannot reply to {ref.message_id}: {e}") from e

    async def deliver_report(self, guild_id: int, channel_id: int, report: Report) -> None:
        channel = self.client.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise NotificationSinkFailure(f"report channel {channel_id} not found in guild {guild_id}")

        try:
            for embed in report_embeds(report):
                await channel.send(embed=embed)
        except discord.HTTPException as e:
            raise NotificationSinkFailure(f"cannot send {report.kind.value} report: {e}") from e
        if report.is_empty:
            logger.info(f"Delivered empty {report.kind.value} report to guild {guild_id}")
        else:
            logger.info(f"Delivered {report.kind.value} report to guild {guild_id} ({len(report.pages)} page(s))")
