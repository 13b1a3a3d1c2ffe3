from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from models.incident import Channel


class ChatGateway(ABC):
    """Abstract boundary between the relay and a chat service.

    Implementations raise ``GatewayError`` for failed calls and
    ``InvalidAuthError`` when the service rejects the credentials.  The
    dispatcher, resolver and dedup probe only ever talk to this interface,
    which keeps them free of any particular SDK.
    """

    @abstractmethod
    async def auth_identity(self) -> dict[str, str]:
        """Return the bot's identity (``user_id``, ``team``, ...)."""

    @abstractmethod
    async def list_conversations(
        self, cursor: str | None = None
    ) -> tuple[list[dict[str, Any]], str]:
        """Return one page of non-archived public and private channels and
        the cursor for the next page (empty when there are no more).
        """

    @abstractmethod
    async def channel_history(self, channel_id: str) -> list[dict[str, Any]]:
        """Return the channel's most recent messages, newest first."""

    @abstractmethod
    async def post_message(
        self,
        channel: Channel,
        attachment: dict[str, Any],
        username: str,
        icon_url: str,
    ) -> None:
        """Post a single-attachment message as a non-user bot identity."""
