"""Turns incident updates into chat messages.

Both ingestion paths end here: the webhook endpoint hands over whole
notifications and the feed poller hands over incidents resolved from the
feed.  Each incident is handled under a single process-wide lock so two
overlapping deliveries of the same update cannot both pass the history
check and post twice.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from chat.base import ChatGateway
from core.channels import ChannelResolver
from core.config import Settings
from core.dedup import DedupProbe
from core.errors import ProbeError
from core.render import render_update
from models.incident import Incident, IncidentUpdate, Notification

log = logging.getLogger(__name__)


@dataclass
class DispatchStats:
    posted: int = 0
    duplicates: int = 0
    probe_failures: int = 0
    dry_run_skips: int = 0
    unhandled: int = 0

    def add(self, other: DispatchStats) -> None:
        self.posted += other.posted
        self.duplicates += other.duplicates
        self.probe_failures += other.probe_failures
        self.dry_run_skips += other.dry_run_skips
        self.unhandled += other.unhandled


class NotificationDispatcher:
    def __init__(
        self,
        gateway: ChatGateway,
        resolver: ChannelResolver,
        settings: Settings,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self._settings = settings
        self._lock = asyncio.Lock()

    @property
    def dry_run(self) -> bool:
        return self._settings.dry_run

    async def dispatch_notification(self, notification: Notification) -> DispatchStats:
        return await self.dispatch_incident(notification.incident)

    async def dispatch_incident(self, incident: Incident) -> DispatchStats:
        """Post every update of ``incident``, oldest first.

        The first ``GatewayError`` from a post aborts the remaining updates
        and propagates; later updates would otherwise land out of order.
        """
        stats = DispatchStats()
        async with self._lock:
            log.info(
                "Processing incident %s (%r), %d update(s)",
                incident.id,
                incident.name,
                len(incident.incident_updates),
            )
            probe = DedupProbe(self._gateway, self._settings)
            for update in incident.chronological_updates():
                stats.add(await self.post_update(incident.name, update, probe))

        if stats.posted or stats.dry_run_skips:
            log.info(
                "Incident %s: %d posted, %d duplicate(s), %d dry-run skip(s)",
                incident.id,
                stats.posted,
                stats.duplicates,
                stats.dry_run_skips,
            )
        return stats

    async def post_update(
        self,
        incident_name: str,
        update: IncidentUpdate,
        probe: DedupProbe,
    ) -> DispatchStats:
        """Render ``update`` and post it to every member channel lacking it.

        Callers must hold the dispatcher lock; ``dispatch_incident`` does.
        """
        stats = DispatchStats()

        message = render_update(incident_name, update, self._settings)
        if message is None:
            stats.unhandled += 1
            return stats
        attachment = message.to_attachment()

        channels = await self._resolver.resolve()
        if not channels:
            log.warning("Not in any channels!")

        for channel in channels:
            try:
                present = await probe.contains(update, channel)
            except ProbeError as exc:
                log.error("Skipping %s for update %s: %s", channel.name, update.id, exc)
                stats.probe_failures += 1
                continue

            if present:
                log.info(
                    "Skipping already posted update %s to %s", update.id, channel.name
                )
                stats.duplicates += 1
                continue

            if self.dry_run:
                log.info("Dry run, would post update %s to %s", update.id, channel.name)
                stats.dry_run_skips += 1
                continue

            log.info("Posting update %s to %s", update.id, channel.name)
            await self._gateway.post_message(
                channel,
                attachment,
                username=self._settings.username,
                icon_url=self._settings.icon_url,
            )
            probe.remember(channel, attachment)
            stats.posted += 1

        return stats
