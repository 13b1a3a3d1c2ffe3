from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from chat.base import ChatGateway
from core.errors import GatewayError, InvalidAuthError
from models.incident import Channel

log = logging.getLogger(__name__)

HISTORY_LIMIT = 100
CONVERSATIONS_PAGE_SIZE = 200
CONVERSATION_TYPES = "public_channel,private_channel"

_AUTH_ERRORS = frozenset(
    {"invalid_auth", "not_authed", "account_inactive", "token_revoked", "token_expired"}
)


class SlackGateway(ChatGateway):
    """``ChatGateway`` backed by the Slack Web API.

    A single ``AsyncWebClient`` is injected so callers decide its token
    and timeout; it is safe to share between concurrent tasks.
    """

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    async def _call(self, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await getattr(self._client, method)(**kwargs)
        except SlackApiError as exc:
            error = exc.response.get("error", "")
            if error in _AUTH_ERRORS:
                raise InvalidAuthError(f"Slack rejected credentials: {error}") from exc
            raise GatewayError(f"Slack {method} failed: {error or exc}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise GatewayError(f"Slack {method} failed: {exc!r}") from exc
        return response.data

    async def auth_identity(self) -> dict[str, str]:
        data = await self._call("auth_test")
        return {
            "user_id": data.get("user_id", ""),
            "user": data.get("user", ""),
            "team": data.get("team", ""),
            "bot_id": data.get("bot_id", ""),
        }

    async def list_conversations(
        self, cursor: str | None = None
    ) -> tuple[list[dict[str, Any]], str]:
        kwargs: dict[str, Any] = {
            "exclude_archived": True,
            "types": CONVERSATION_TYPES,
            "limit": CONVERSATIONS_PAGE_SIZE,
        }
        if cursor:
            kwargs["cursor"] = cursor
        data = await self._call("conversations_list", **kwargs)
        next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or ""
        return list(data.get("channels") or []), next_cursor

    async def channel_history(self, channel_id: str) -> list[dict[str, Any]]:
        data = await self._call(
            "conversations_history", channel=channel_id, limit=HISTORY_LIMIT
        )
        return list(data.get("messages") or [])

    async def post_message(
        self,
        channel: Channel,
        attachment: dict[str, Any],
        username: str,
        icon_url: str,
    ) -> None:
        await self._call(
            "chat_postMessage",
            channel=channel.id,
            text="",
            attachments=[attachment],
            username=username,
            as_user=False,
            icon_url=icon_url,
        )
        log.debug("Posted %s to %s", attachment.get("callback_id"), channel.name)
