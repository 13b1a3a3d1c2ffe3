from __future__ import annotations

import logging

from chat.base import ChatGateway
from models.incident import Channel

log = logging.getLogger(__name__)

# Guards against a gateway that keeps handing back a cursor.
MAX_PAGES = 50


class ChannelResolver:
    """Looks up the channels the bot is currently a member of.

    Membership is never cached; every dispatch asks again so joins and
    leaves take effect on the next update.
    """

    def __init__(self, gateway: ChatGateway) -> None:
        self._gateway = gateway

    async def resolve(self) -> list[Channel]:
        channels: list[Channel] = []
        cursor: str | None = None

        for _ in range(MAX_PAGES):
            conversations, cursor = await self._gateway.list_conversations(cursor)
            for conversation in conversations:
                if not conversation.get("is_member"):
                    continue
                name = conversation.get("name_normalized") or conversation.get("name", "")
                channels.append(Channel(id=conversation["id"], name=f"#{name}"))
            if not cursor:
                break
        else:
            log.warning(
                "Stopped listing channels after %d pages, results may be incomplete",
                MAX_PAGES,
            )

        return channels
