"""
Discord Announcements Module (Control-Plane Runtime)

Keeps one announcement message per subscription in agreement with the
monitored channel's state.

Per subscription, in order:
- destination gone      → subscription queued for removal, others continue
- no recorded message   → post a new message and record its id
- recorded message      → fetch and edit in place
- message deleted       → post a replacement and record the new id

IMPORTANT CONSTRAINTS:
- This module MUST NOT own a Discord client (a platform adapter is injected)
- Subscriptions are processed one at a time
- Removal is deferred to the caller; the subscription list is not mutated
- Platform errors other than "not found" propagate to the caller
"""

from __future__ import annotations

from typing import List

from core.monitoring.models import LifecyclePhase, MonitoredChannel, Subscription
from services.discord.embeds import AnnouncementContent
from shared.logging.logger import get_logger

log = get_logger("discord.announcements", runtime="discord")


class NotificationReconciler:
    def __init__(self, platform):
        self._platform = platform

    # --------------------------------------------------

    async def reconcile(
        self,
        channel: MonitoredChannel,
        phase: LifecyclePhase,
        content: AnnouncementContent,
    ) -> List[Subscription]:
        """
        Fan the content out to every subscription of the channel.

        Returns the subscriptions whose destination no longer resolves.
        """
        unresolved: List[Subscription] = []

        for subscription in list(channel.subscriptions):
            destination = self._platform.resolve_destination(subscription.destination_id)
            if destination is None:
                if subscription not in unresolved:
                    log.info(
                        f"[{channel.channel_id}] removing channel "
                        f"{subscription.destination_id}"
                    )
                    unresolved.append(subscription)
                continue

            await self._upsert(channel, phase, subscription, destination, content)

        return unresolved

    # --------------------------------------------------

    async def _upsert(
        self,
        channel: MonitoredChannel,
        phase: LifecyclePhase,
        subscription: Subscription,
        destination,
        content: AnnouncementContent,
    ) -> None:
        if not subscription.has_message:
            subscription.last_message_id = await self._platform.create_message(destination, content)
            log.info(
                f"[{channel.channel_id}] Posted {phase.value} announcement "
                f"{subscription.last_message_id} in {subscription.destination_id}"
            )
            return

        message = await self._platform.fetch_message(destination, subscription.last_message_id)
        if message is not None:
            edited = await self._platform.edit_message(
                destination,
                subscription.last_message_id,
                content,
            )
            if edited:
                log.debug(
                    f"[{channel.channel_id}] Updated announcement "
                    f"{subscription.last_message_id} in {subscription.destination_id}"
                )
                return

        log.info(
            f"[{channel.channel_id}] Message {subscription.last_message_id} was not "
            f"found in channel {subscription.destination_id}, reposting it"
        )
        subscription.last_message_id = await self._platform.create_message(destination, content)
