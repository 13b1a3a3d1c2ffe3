from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from chat.base import ChatGateway
from core.channels import ChannelResolver
from core.errors import GatewayError, InvalidAuthError
from models.incident import Channel

log = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 60.0
HISTORY_SIZE = 100


class EventType(str, Enum):
    CONNECTED = "connected"
    CONNECTION_ERROR = "connection_error"
    INVALID_AUTH = "invalid_auth"
    CHANNEL_JOINED = "channel_joined"
    CHANNEL_LEFT = "channel_left"


@dataclass(frozen=True)
class LifecycleEvent:
    type: EventType
    detail: str = ""
    channel: Channel | None = None


@dataclass
class _Observed:
    bot_id: str | None = None
    channels: dict[str, Channel] | None = None
    history: deque[LifecycleEvent] = field(default_factory=lambda: deque(maxlen=HISTORY_SIZE))


class LifecycleMonitor:
    """Watches the chat connection and logs what happens to it.

    Each check calls ``auth.test`` (reporting the bot identity, or an
    invalid-credentials event, which is fatal) and compares channel
    membership with the previous check to report joins and leaves.

    Purely observational: the dispatcher never waits for it, and posting
    goes through the Web API whether or not a check has succeeded yet.
    """

    def __init__(
        self,
        gateway: ChatGateway,
        resolver: ChannelResolver,
        interval: float = DEFAULT_CHECK_INTERVAL,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self._interval = interval
        self._observed = _Observed()

    @property
    def bot_id(self) -> str | None:
        return self._observed.bot_id

    @property
    def events(self) -> list[LifecycleEvent]:
        return list(self._observed.history)

    def handle(self, event: LifecycleEvent) -> None:
        """Log ``event``; raises ``InvalidAuthError`` for invalid credentials."""
        self._observed.history.append(event)

        if event.type is EventType.CONNECTED:
            self._observed.bot_id = event.detail
            log.info("Connected, bot id = %s", event.detail)
        elif event.type is EventType.INVALID_AUTH:
            log.critical("Invalid credentials: %s", event.detail)
            raise InvalidAuthError(event.detail or "invalid credentials")
        elif event.type is EventType.CONNECTION_ERROR:
            log.error("Error: %s", event.detail)
        elif event.type is EventType.CHANNEL_JOINED:
            log.info("Joined channel: %s", event.channel.name if event.channel else "?")
        elif event.type is EventType.CHANNEL_LEFT:
            log.info("Left channel: %s", event.channel.name if event.channel else "?")

    async def check(self) -> None:
        try:
            identity = await self._gateway.auth_identity()
        except InvalidAuthError as exc:
            self.handle(LifecycleEvent(EventType.INVALID_AUTH, str(exc)))
            return
        except GatewayError as exc:
            self.handle(LifecycleEvent(EventType.CONNECTION_ERROR, str(exc)))
            return

        user_id = identity.get("user_id", "")
        if user_id != self._observed.bot_id:
            self.handle(LifecycleEvent(EventType.CONNECTED, user_id))

        try:
            channels = await self._resolver.resolve()
        except InvalidAuthError as exc:
            self.handle(LifecycleEvent(EventType.INVALID_AUTH, str(exc)))
            return
        except GatewayError as exc:
            self.handle(LifecycleEvent(EventType.CONNECTION_ERROR, str(exc)))
            return

        current = {channel.id: channel for channel in channels}
        previous = self._observed.channels
        self._observed.channels = current

        if previous is None:
            for channel in channels:
                log.info("In channel %s", channel.name)
            if not channels:
                log.warning("Not in any channels yet")
            return

        for channel_id, channel in current.items():
            if channel_id not in previous:
                self.handle(LifecycleEvent(EventType.CHANNEL_JOINED, channel=channel))
        for channel_id, channel in previous.items():
            if channel_id not in current:
                self.handle(LifecycleEvent(EventType.CHANNEL_LEFT, channel=channel))

    async def run(self) -> None:
        """Check now, then every ``interval`` seconds, until credentials fail."""
        while True:
            await self.check()
            await asyncio.sleep(self._interval)
