from __future__ import annotations

import logging
from typing import Any

from chat.base import ChatGateway
from core.config import Settings
from core.errors import GatewayError, ProbeError
from models.incident import Channel, IncidentUpdate

log = logging.getLogger(__name__)


def _same_ts(raw: Any, expected: int) -> bool:
    """Compare an attachment ``ts`` that Slack may return as int, float or str."""
    if raw is None or raw == "":
        return False
    try:
        return int(float(raw)) == expected
    except (TypeError, ValueError):
        return False


class DedupProbe:
    """Answers "has this update already been posted to this channel?"
    from the channel's own history, so no state is kept between runs.

    A probe lives for one notification dispatch and caches each channel's
    history for that long; a new dispatch builds a new probe and sees
    fresh history.
    """

    def __init__(self, gateway: ChatGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings
        self._history: dict[str, list[dict[str, Any]]] = {}

    async def _messages(self, channel: Channel) -> list[dict[str, Any]]:
        if channel.id not in self._history:
            try:
                messages = await self._gateway.channel_history(channel.id)
            except GatewayError as exc:
                raise ProbeError(
                    f"could not read history of {channel.name}: {exc}"
                ) from exc
            self._history[channel.id] = list(messages)
        return self._history[channel.id]

    def matches(self, update: IncidentUpdate, attachment: dict[str, Any]) -> bool:
        if attachment.get("callback_id") == update.id:
            return True
        # Messages from before callback ids were stamped.
        return attachment.get("title_link") == self._settings.incident_url(
            update.incident_id
        ) and _same_ts(attachment.get("ts"), update.created_unix)

    async def contains(self, update: IncidentUpdate, channel: Channel) -> bool:
        """Raises ``ProbeError`` when history cannot be read."""
        for message in await self._messages(channel):
            # Only bot integration posts count; anything a person wrote is ignored.
            if message.get("user"):
                continue
            for attachment in message.get("attachments") or []:
                if self.matches(update, attachment):
                    return True
        return False

    def remember(self, channel: Channel, attachment: dict[str, Any]) -> None:
        """Record a message just posted so later probes in this dispatch see it."""
        self._history.setdefault(channel.id, []).insert(
            0, {"attachments": [attachment]}
        )
