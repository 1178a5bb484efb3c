"""
Discord Client (Control-Plane Runtime)

This module owns the Discord connection itself and the monitoring stack
that depends on it.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- wire the announcement platform, reconciler and scheduler to the bot
- start channel monitoring once the gateway is ready
- register the admin command surface
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST NOT create its own event loop
- Monitoring starts at most once per process, on the first ready event
"""

from __future__ import annotations

import asyncio
import os
from typing import Optional

import discord
from discord.ext import commands

from core.monitoring.reconciler import StreamLifecycleReconciler
from core.scheduler import MonitorScheduler
from services.discord import commands as command_surfaces
from services.discord.announcements import NotificationReconciler
from services.discord.commands.admin import AdminCommandHandler
from services.discord.platform import DiscordNotificationPlatform
from shared.config.monitor import MonitorConfig
from shared.logging.logger import get_logger
from shared.storage.channel_store import MonitoredChannelStore

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")

TOKEN_ENV_KEY = "DISCORD_BOT_TOKEN"


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.

    This class provides:
    - async run() entrypoint
    - async shutdown()
    - lifecycle event logging
    - monitoring + command surface wiring
    """

    def __init__(
        self,
        *,
        config: MonitorConfig,
        store: MonitoredChannelStore,
        probe,
    ):
        token = os.getenv(TOKEN_ENV_KEY)
        if not token:
            raise RuntimeError(f"{TOKEN_ENV_KEY} not found in environment")

        log.info(f"Discord bot token present: {bool(token)}")

        self._token: str = token
        self._config = config
        self._store = store
        self._probe = probe

        self._bot: Optional[commands.Bot] = None
        self._scheduler: Optional[MonitorScheduler] = None
        self._ready_event = asyncio.Event()

    # --------------------------------------------------

    def _build_scheduler(self, bot: commands.Bot) -> MonitorScheduler:
        platform = DiscordNotificationPlatform(bot)
        reconciler = StreamLifecycleReconciler(
            store=self._store,
            probe=self._probe,
            notifier=NotificationReconciler(platform),
            debounce_window=self._config.debounce_window,
            mention_template=self._config.mention_template,
        )
        return MonitorScheduler(
            reconciler,
            interval_seconds=self._config.poll_interval_seconds,
        )

    def _build_bot(self) -> commands.Bot:
        """
        Construct the discord.py Bot instance.

        NOTE:
        - Commands are registered here
        - The scheduler is built here but started on ready
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.messages = True
        intents.message_content = False  # slash-command focused

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        self._scheduler = self._build_scheduler(bot)

        # --------------------------------------------------
        # Command Registration
        # --------------------------------------------------

        command_surfaces.setup(
            bot,
            handler=AdminCommandHandler(store=self._store, scheduler=self._scheduler),
        )

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )

            # Sync slash commands
            try:
                await bot.tree.sync()
                log.info("Discord command tree synced")
            except Exception as e:
                log.error(f"Failed to sync Discord commands: {e}")

            if not self._ready_event.is_set():
                self._start_monitoring()

            self._ready_event.set()

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(
                f"Joined guild: {guild.name} "
                f"(id={guild.id}, members={guild.member_count})"
            )

        @bot.event
        async def on_guild_remove(guild: discord.Guild):
            log.info(
                f"Removed from guild: {guild.name} "
                f"(id={guild.id})"
            )

        return bot

    def _start_monitoring(self):
        channel_ids = self._store.list_channel_ids()
        if not channel_ids:
            log.warning("No monitored channels registered; nothing to schedule")
            return

        self._scheduler.start(channel_ids)
        log.info(f"Monitoring started for {len(channel_ids)} channel(s)")

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Stop monitoring, then close the Discord connection.
        """
        if self._scheduler:
            try:
                await self._scheduler.shutdown()
            except Exception as e:
                log.warning(f"Scheduler shutdown error ignored: {e}")

        if not self._bot:
            return

        log.info("Closing Discord connection")

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._bot = None
        self._scheduler = None
        self._ready_event.clear()

    # --------------------------------------------------

    @property
    def bot(self) -> Optional[commands.Bot]:
        return self._bot

    @property
    def scheduler(self) -> Optional[MonitorScheduler]:
        return self._scheduler
