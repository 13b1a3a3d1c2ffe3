r"""statusbot -- entry point.

Assembles the relay:

    Webhook endpoint (uvicorn)  \
                                 -> NotificationDispatcher -> Slack channels
    Feed poller (optional)      /

plus a lifecycle monitor task that watches the Slack credentials and
channel membership.

A shared httpx.AsyncClient is used for every feed/incident fetch and a
shared slack_sdk AsyncWebClient for every Slack call.  With --atom-feed
the feed is processed once and the process exits.  Otherwise SIGTERM or
Ctrl-C stops the webhook server, the other tasks are cancelled and the
process exits 0.
"""
from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

import httpx
import uvicorn
from slack_sdk.web.async_client import AsyncWebClient

from chat.lifecycle import LifecycleMonitor
from chat.slack import SlackGateway
from core.channels import ChannelResolver
from core.config import Settings, load_settings
from core.dispatcher import NotificationDispatcher
from core.errors import ConfigError, InvalidAuthError, RelayError
from core.scheduler import FeedPoller
from providers.atom_feed import AtomFeedProvider
from providers.webhook import create_app

__version__ = "0.1.0"

log = logging.getLogger("statusbot")


async def run(settings: Settings) -> None:
    log.info("Statusbot (%s) starting", __version__)
    if settings.dry_run:
        log.info("Dry run: nothing will be posted to Slack")

    slack = AsyncWebClient(token=settings.slack_token, timeout=settings.slack_timeout)
    gateway = SlackGateway(slack)
    resolver = ChannelResolver(gateway)
    dispatcher = NotificationDispatcher(gateway, resolver, settings)

    async with httpx.AsyncClient(
        timeout=settings.http_timeout, follow_redirects=True
    ) as client:
        if settings.atom_feed:
            provider = AtomFeedProvider(client, settings.atom_feed, after=settings.after)
            await FeedPoller(provider, dispatcher).run_once()
            return

        fatal: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_fatal(exc: Exception) -> None:
            if not fatal.done():
                fatal.set_exception(exc)

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(dispatcher, on_fatal=on_fatal),
                host="0.0.0.0",
                port=settings.port,
                log_level=settings.log_level.lower(),
            )
        )
        log.info("Webhook server started, listening on :%d", settings.port)

        tasks = [
            asyncio.create_task(
                LifecycleMonitor(gateway, resolver).run(), name="lifecycle"
            ),
            fatal,
        ]

        if settings.poll_atom_feed:
            provider = AtomFeedProvider(
                client,
                settings.poll_atom_feed,
                after=settings.after,
                poll_interval_seconds=settings.poll_frequency,
            )
            tasks.append(
                asyncio.create_task(FeedPoller(provider, dispatcher).run(), name="poller")
            )

        install_shutdown_handler(server)
        webhook = asyncio.create_task(server.serve(), name="webhook")
        await supervise(server, webhook, tasks)


def install_shutdown_handler(server: uvicorn.Server) -> None:
    """Make SIGTERM stop the webhook server the way Ctrl-C does."""

    def request_exit() -> None:
        log.info("Received SIGTERM, shutting down")
        server.should_exit = True

    # add_signal_handler is Unix-only; elsewhere Ctrl-C still stops the server
    if sys.platform != "win32":
        asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, request_exit)


async def supervise(
    server: uvicorn.Server,
    webhook: asyncio.Future[None],
    others: list[asyncio.Future[None]],
) -> None:
    """Wait until the webhook server stops or another task fails.

    The server returning is a clean shutdown.  The other tasks only finish
    by raising; that error is re-raised once everything has been stopped.
    """
    tasks = [webhook, *others]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        server.should_exit = True
        for task in others:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
        task.result()


def main(argv: list[str] | None = None) -> None:
    try:
        settings = load_settings(argv, os.environ)
    except ConfigError as exc:
        print(f"statusbot: {exc}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        asyncio.run(run(settings))
    except InvalidAuthError as exc:
        log.critical("Invalid credentials: %s", exc)
        sys.exit(1)
    except RelayError as exc:
        log.critical("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nShutting down.")


if __name__ == "__main__":
    main()
