"""Shared UI components."""

from __future__ import annotations

import discord
from discord import ui


class EmbedPaginator(ui.View):
    """Previous/next buttons over a fixed list of embeds."""

    def __init__(self, embeds: list[discord.Embed], owner_id: int | None = None, timeout: float = 300):
        super().__init__(timeout=timeout)
        self.embeds = embeds
        self.owner_id = owner_id
        self.index = 0
        self.message: discord.Message | None = None
        self._sync_buttons()

    @property
    def current(self) -> discord.Embed:
        return self.embeds[self.index]

    def _sync_buttons(self) -> None:
        self.previous_button.disabled = self.index == 0
        self.next_button.disabled = self.index >= len(self.embeds) - 1

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if self.owner_id is not None and interaction.user.id != self.owner_id:
            await interaction.response.send_message("These buttons aren't for you.", ephemeral=True)
            return False
        return True

    async def on_timeout(self) -> None:
        for item in self.children:
            if isinstance(item, ui.Button):
                item.disabled = True
        if self.message is not None:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException:
                pass

    @ui.button(label="◀ Previous", style=discord.ButtonStyle.secondary)
    async def previous_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        self.index = max(0, self.index - 1)
        self._sync_buttons()
        await interaction.response.edit_message(embed=self.current, view=self)

    @ui.button(label="Next ▶", style=discord.ButtonStyle.secondary)
    async def next_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        self.index = min(len(self.embeds) - 1, self.index + 1)
        self._sync_buttons()
        await interaction.response.edit_message(embed=self.current, view=self)


async def send_paginated(
    ctx, embeds: list[discord.Embed], *, owner_id: int | None = None, ephemeral: bool = False
) -> None:
    """Send one embed, or the first with a paginator when there are several."""
    if len(embeds) == 1:
        await ctx.send(embed=embeds[0], ephemeral=ephemeral)
        return
    view = EmbedPaginator(embeds, owner_id=owner_id)
    view.message = await ctx.send(embed=view.current, view=view, ephemeral=ephemeral)
