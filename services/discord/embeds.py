from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import discord

from core.monitoring.models import MonitoredChannel
from services.twitch.models.stream import StreamSnapshot
from shared.utils.durations import format_local, humanize_duration

TWITCH_URL = "https://twitch.tv/{login}"
DEFAULT_MENTION_TEMPLATE = "@everyone {name} is live!"


@dataclass
class AnnouncementContent:
    """Text + embed pair posted to (or edited into) a destination."""

    text: str
    embed: discord.Embed


def info_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.blurple(),
    )


def success_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.green(),
    )


def error_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.red(),
    )


def _channel_url(channel: MonitoredChannel, snapshot: Optional[StreamSnapshot] = None) -> str:
    login = (snapshot.user_login if snapshot else None) or channel.display_name
    return TWITCH_URL.format(login=login.lower())


def live_embed(
    channel: MonitoredChannel,
    snapshot: StreamSnapshot,
    now: datetime,
    profile_image: Optional[str] = None,
) -> discord.Embed:
    url = _channel_url(channel, snapshot)
    live_for = humanize_duration(now - channel.session_start, max_unit="hour", min_unit="second")

    embed = discord.Embed(
        title=snapshot.title or None,
        url=url,
        color=discord.Color.purple(),
    )
    embed.set_author(name=f"{channel.display_name} is live", url=url)
    if profile_image:
        embed.set_thumbnail(url=profile_image)
    embed.add_field(name="Playing", value=snapshot.activity_name, inline=True)
    embed.add_field(name="Viewers", value=str(snapshot.viewer_count), inline=True)
    if snapshot.thumbnail_template:
        # timestamp suffix defeats Discord's image cache
        embed.set_image(url=f"{snapshot.thumbnail_url()}?{int(now.timestamp())}")
    embed.set_footer(text=f"Live for {live_for}")
    return embed


def live_announcement(
    channel: MonitoredChannel,
    snapshot: StreamSnapshot,
    now: datetime,
    *,
    mention_template: str = DEFAULT_MENTION_TEMPLATE,
    profile_image: Optional[str] = None,
) -> AnnouncementContent:
    return AnnouncementContent(
        text=mention_template.format(name=channel.display_name),
        embed=live_embed(channel, snapshot, now, profile_image),
    )


def summary_announcement(
    channel: MonitoredChannel,
    *,
    profile_image: Optional[str] = None,
) -> AnnouncementContent:
    started, tz_label = format_local(channel.session_start, channel.timezone_override)
    ended, _ = format_local(channel.session_end, channel.timezone_override)
    total = humanize_duration(channel.session_length, max_unit="hour", min_unit="minute")

    description = "\n".join([
        f"**Started at:** {started} {tz_label}",
        f"__**Ended at:** {ended} {tz_label}__",
        f"**Total Time:** {total}",
    ])

    url = _channel_url(channel)
    embed = discord.Embed(description=description, color=discord.Color.dark_grey())
    embed.set_author(name=f"{channel.display_name} was live", url=url)
    if profile_image:
        embed.set_thumbnail(url=profile_image)
    return AnnouncementContent(text="", embed=embed)
