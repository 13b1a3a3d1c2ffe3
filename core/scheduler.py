from __future__ import annotations

import asyncio
import logging

from core.dispatcher import DispatchStats, NotificationDispatcher
from core.errors import GatewayError, InvalidAuthError
from providers.base import StatusProvider

log = logging.getLogger(__name__)


class FeedPoller:
    """Pulls incidents from a provider and hands them to the dispatcher.

    ``run_once()`` is the one-shot mode; ``run()`` repeats it every
    ``provider.poll_interval_seconds`` starting immediately.  Nothing is
    remembered between cycles: the dispatcher's history check is what
    stops an incident from being posted twice.
    """

    def __init__(
        self,
        provider: StatusProvider,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher

    async def run_once(self) -> DispatchStats:
        """Process the feed once.

        A chat failure on one incident is logged and the poller moves on
        to the next incident.  ``FeedError`` (feed unreadable) and
        ``InvalidAuthError`` propagate.
        """
        totals = DispatchStats()
        failures = 0

        async for incident in self._provider.iter_incidents():
            try:
                stats = await self._dispatcher.dispatch_incident(incident)
            except InvalidAuthError:
                raise
            except GatewayError as exc:
                log.error("Failed to post incident %s: %s", incident.id, exc)
                failures += 1
                continue
            totals.add(stats)

        log.info(
            "[%s] Feed processed: %d posted, %d duplicate(s), %d failure(s)",
            self._provider.name,
            totals.posted,
            totals.duplicates,
            failures + totals.probe_failures,
        )
        return totals

    async def run(self) -> None:
        """Long-lived polling loop.

        Each cycle:
        1. fetch the feed and resolve incidents past the cutoff
        2. dispatch each incident (dedup happens against channel history)
        3. sleep for the provider's poll interval

        A failing cycle is logged and retried on the next tick; only
        ``InvalidAuthError`` ends the loop.
        """
        log.info(
            "Polling %s every %ss",
            self._provider.name,
            self._provider.poll_interval_seconds,
        )

        while True:
            try:
                await self.run_once()
            except InvalidAuthError:
                raise
            except Exception:
                log.exception("Error processing feed %s", self._provider.name)

            await asyncio.sleep(self._provider.poll_interval_seconds)
