"""
Discord Admin Slash Command Registration (Control-Plane Runtime)

This module is the thin registration layer that exposes administrator-only
slash commands to Discord and delegates ALL logic to AdminCommandHandler.

IMPORTANT DESIGN RULES:
- NO business logic
- NO persistence
- Discord I/O (responses) ONLY at the boundary
"""

from __future__ import annotations

import time
from datetime import datetime

import discord
from discord import app_commands
from discord.ext import commands

from services.discord.commands.admin import AdminCommandHandler
from services.discord.embeds import error_embed, info_embed, success_embed
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.commands.admin.register", runtime="discord")


def _format_next_run(value: str | None) -> str:
    if not value:
        return "pending"
    return f"<t:{int(datetime.fromisoformat(value).timestamp())}:T>"


# ==================================================
# Registration Entry Point
# ==================================================

def setup(bot: commands.Bot, *, handler: AdminCommandHandler):
    """
    Register all admin-level Discord slash commands.

    This function is called explicitly by the Discord client
    during startup.
    """

    # --------------------------------------------------
    # /latency
    # --------------------------------------------------

    @app_commands.command(
        name="latency",
        description="Show bot gateway and api latency",
    )
    @app_commands.default_permissions(administrator=True)
    async def latency(interaction: discord.Interaction):
        result = await handler.cmd_latency(gateway_latency=bot.latency)

        started = time.perf_counter()
        await interaction.response.send_message(
            content=f"Gateway Latency: {result['gateway_ms']}ms",
            ephemeral=True,
        )
        api_ms = round((time.perf_counter() - started) * 1000)

        await interaction.followup.send(
            content=f"Api Latency: {api_ms}ms",
            ephemeral=True,
        )

    # --------------------------------------------------
    # /jobs
    # --------------------------------------------------

    @app_commands.command(
        name="jobs",
        description="Show the current long running jobs",
    )
    @app_commands.default_permissions(administrator=True)
    async def jobs(interaction: discord.Interaction):
        entries = await handler.cmd_jobs()

        if not entries:
            await interaction.response.send_message("No Jobs Running", ephemeral=True)
            return

        embed = info_embed("Currently Running Jobs")
        for entry in entries:
            embed.add_field(
                name=entry["channel_id"],
                value=(
                    f"Next Run: {_format_next_run(entry['next_run'])}\n"
                    f"Last Outcome: {entry['last_outcome'] or 'n/a'}"
                ),
                inline=False,
            )

        await interaction.response.send_message(embed=embed, ephemeral=True)

    # --------------------------------------------------
    # /live-subscribe
    # --------------------------------------------------

    @app_commands.command(
        name="live-subscribe",
        description="Post live announcements for a monitored channel here",
    )
    @app_commands.describe(channel_id="Twitch user id of the monitored channel")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def live_subscribe(interaction: discord.Interaction, channel_id: str):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_subscribe(
            user_id=interaction.user.id,
            channel_id=channel_id,
            destination_id=interaction.channel_id,
        )

        embed = (success_embed if result["ok"] else error_embed)("Subscriptions", result["message"])
        await interaction.followup.send(embed=embed, ephemeral=True)

    # --------------------------------------------------
    # /live-unsubscribe
    # --------------------------------------------------

    @app_commands.command(
        name="live-unsubscribe",
        description="Stop live announcements for a monitored channel here",
    )
    @app_commands.describe(channel_id="Twitch user id of the monitored channel")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def live_unsubscribe(interaction: discord.Interaction, channel_id: str):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_unsubscribe(
            user_id=interaction.user.id,
            channel_id=channel_id,
            destination_id=interaction.channel_id,
        )

        embed = (success_embed if result["ok"] else error_embed)("Subscriptions", result["message"])
        await interaction.followup.send(embed=embed, ephemeral=True)

    # --------------------------------------------------
    # Register Commands
    # --------------------------------------------------

    bot.tree.add_command(latency)
    bot.tree.add_command(jobs)
    bot.tree.add_command(live_subscribe)
    bot.tree.add_command(live_unsubscribe)

    log.info("Discord admin slash commands registered")
