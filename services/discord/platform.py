"""
Discord Notification Platform (Control-Plane Runtime)

Thin adapter between the announcement reconciler and discord.py.

Responsibilities:
- Resolve a stored destination id to a postable channel
- Create, fetch and edit announcement messages
- Map discord.NotFound to "not found" results

IMPORTANT:
- This module MUST NOT own the Discord client
- Errors other than NotFound propagate to the caller
"""

from __future__ import annotations

from typing import Optional, Union

import discord

from services.discord.embeds import AnnouncementContent
from shared.logging.logger import get_logger

log = get_logger("discord.platform", runtime="discord")

Destination = Union[discord.TextChannel, discord.Thread]


class DiscordNotificationPlatform:
    def __init__(self, client: discord.Client):
        self._client = client

    # --------------------------------------------------

    def resolve_destination(self, destination_id: int) -> Optional[Destination]:
        channel = self._client.get_channel(int(destination_id))
        if isinstance(channel, (discord.TextChannel, discord.Thread)):
            return channel

        if channel is not None:
            log.warning(
                f"Destination {destination_id} is not a text channel "
                f"({type(channel).__name__})"
            )
        return None

    async def create_message(
        self,
        destination: Destination,
        content: AnnouncementContent,
    ) -> int:
        message = await destination.send(
            content=content.text or None,
            embed=content.embed,
        )
        log.debug(f"Posted message {message.id} in {destination.id}")
        return message.id

    async def fetch_message(
        self,
        destination: Destination,
        message_id: int,
    ) -> Optional[discord.Message]:
        try:
            return await destination.fetch_message(int(message_id))
        except discord.NotFound:
            return None

    async def edit_message(
        self,
        destination: Destination,
        message_id: int,
        content: AnnouncementContent,
    ) -> bool:
        partial = destination.get_partial_message(int(message_id))
        try:
            # content=None clears any previous text
            await partial.edit(content=content.text or None, embed=content.embed)
        except discord.NotFound:
            return False
        return True
