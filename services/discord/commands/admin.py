"""
Discord Admin Commands (Control-Plane Runtime)

This module defines administrator-only command handlers:
- gateway latency inspection
- scheduled monitoring jobs and their next run
- subscribing / unsubscribing a text channel to a monitored channel

IMPORTANT CONSTRAINTS:
- This module MUST NOT register commands on import
- This module MUST NOT own a Discord client
- Handlers receive plain ids and return plain dicts
"""

from __future__ import annotations

from typing import Any, Dict, List

from core.monitoring.errors import StoreError
from core.scheduler import MonitorScheduler
from shared.logging.logger import get_logger
from shared.storage.channel_store import MonitoredChannelStore

log = get_logger("discord.commands.admin", runtime="discord")


class AdminCommandHandler:
    """
    Declarative handler for admin-level Discord commands.

    This class does NOT register commands.
    It provides callable handlers to be wired by the Discord client layer.
    """

    def __init__(
        self,
        *,
        store: MonitoredChannelStore,
        scheduler: MonitorScheduler,
    ):
        self._store = store
        self._scheduler = scheduler

    # --------------------------------------------------
    # DIAGNOSTICS
    # --------------------------------------------------

    async def cmd_latency(self, *, gateway_latency: float) -> Dict[str, Any]:
        """
        Report gateway latency in milliseconds.

        Permissions: Admin only
        """
        return {"gateway_ms": round(gateway_latency * 1000)}

    async def cmd_jobs(self) -> List[Dict[str, Any]]:
        """
        List scheduled monitoring jobs.

        Permissions: Admin only
        """
        jobs = self._scheduler.snapshot()
        log.debug(f"Jobs requested ({len(jobs)} scheduled)")
        return jobs

    # --------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------

    async def cmd_subscribe(
        self,
        *,
        user_id: int,
        channel_id: str,
        destination_id: int,
    ) -> Dict[str, Any]:
        """
        Subscribe a text channel to live announcements.

        Permissions: Admin only
        """
        channel_id = channel_id.strip()
        try:
            added = self._store.add_subscription(channel_id, destination_id)
        except StoreError as e:
            log.error(f"[{channel_id}] Subscribe failed: {e}")
            return {"ok": False, "message": "Subscription could not be saved"}

        log.info(
            f"[{channel_id}] Subscribe requested by {user_id} "
            f"for {destination_id}: {'added' if added else 'unchanged'}"
        )

        if not added:
            return {
                "ok": False,
                "message": f"`{channel_id}` is not monitored or this channel is already subscribed",
            }
        return {"ok": True, "message": f"Live announcements for `{channel_id}` will be posted here"}

    async def cmd_unsubscribe(
        self,
        *,
        user_id: int,
        channel_id: str,
        destination_id: int,
    ) -> Dict[str, Any]:
        """
        Remove a text channel's subscription.

        Permissions: Admin only
        """
        channel_id = channel_id.strip()
        try:
            removed = self._store.remove_subscription(channel_id, destination_id)
        except StoreError as e:
            log.error(f"[{channel_id}] Unsubscribe failed: {e}")
            return {"ok": False, "message": "Subscription could not be removed"}

        log.info(
            f"[{channel_id}] Unsubscribe requested by {user_id} "
            f"for {destination_id}: {'removed' if removed else 'unchanged'}"
        )

        if not removed:
            return {"ok": False, "message": f"This channel is not subscribed to `{channel_id}`"}
        return {"ok": True, "message": f"Live announcements for `{channel_id}` stopped"}
