"""
Discord Command Package (Control-Plane Runtime)

This package centralizes registration for all Discord command surfaces
used by the control-plane runtime.

Command categories:
- admin → administrator-only diagnostics and subscription management

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from discord.ext import commands

from shared.logging.logger import get_logger

# Sub-command modules (registration-only)
from services.discord.commands import admin_commands

log = get_logger("discord.commands", runtime="discord")


def setup(bot: commands.Bot, *, handler):
    """
    Register all Discord command surfaces.

    This function is called exactly once by the Discord client
    during startup.
    """

    # --------------------------------------------------
    # Admin-level commands
    # --------------------------------------------------
    admin_commands.setup(bot, handler=handler)

    log.info("Discord command surfaces initialized")
