"""
Shared fixtures for the relay tests.

Slack is replaced by ``FakeGateway``, an in-memory ``ChatGateway`` that
keeps channel histories and records every post, so dispatch behaviour can
be checked without a network.
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chat.base import ChatGateway
from core.channels import ChannelResolver
from core.config import Settings
from core.dispatcher import NotificationDispatcher
from core.errors import GatewayError
from models.incident import Channel, IncidentUpdate

T1 = datetime(2024, 6, 2, 10, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 6, 2, 11, 30, 0, tzinfo=timezone.utc)


class FakeGateway(ChatGateway):
    """In-memory chat service.

    ``conversations`` is a list of pages; posting appends a bot message to
    the channel's history, newest first, like Slack returns it.
    """

    def __init__(self, conversations=None, histories=None):
        if conversations is None:
            conversations = [[
                {"id": "C1", "name_normalized": "general", "is_member": True},
            ]]
        self.conversations = conversations
        self.histories = histories or {}
        self.posts = []
        self.history_calls = []
        self.list_calls = []
        self.fail_history = set()
        self.fail_post = set()
        self.identity = {"user_id": "U0BOT", "user": "statusbot", "team": "T", "bot_id": "B1"}
        self.auth_error = None

    async def auth_identity(self):
        if self.auth_error is not None:
            raise self.auth_error
        return dict(self.identity)

    async def list_conversations(self, cursor=None):
        self.list_calls.append(cursor)
        index = int(cursor) if cursor else 0
        page = self.conversations[index]
        next_cursor = str(index + 1) if index + 1 < len(self.conversations) else ""
        return list(page), next_cursor

    async def channel_history(self, channel_id):
        self.history_calls.append(channel_id)
        if channel_id in self.fail_history:
            raise GatewayError(f"history unavailable for {channel_id}")
        return list(self.histories.get(channel_id, []))

    async def post_message(self, channel, attachment, username, icon_url):
        # Yield so concurrent dispatches get a chance to interleave.
        await asyncio.sleep(0)
        if channel.id in self.fail_post:
            raise GatewayError(f"channel_not_found: {channel.id}")
        self.posts.append({
            "channel": channel,
            "attachment": attachment,
            "username": username,
            "icon_url": icon_url,
        })
        self.histories.setdefault(channel.id, []).insert(
            0, {"type": "message", "subtype": "bot_message", "attachments": [attachment]}
        )

    def posted_ids(self, channel_id=None):
        return [
            p["attachment"]["callback_id"]
            for p in self.posts
            if channel_id is None or p["channel"].id == channel_id
        ]


def make_update(update_id, status, created_at, body="", incident_id="inc1"):
    return IncidentUpdate(
        id=update_id,
        incident_id=incident_id,
        status=status,
        body=body,
        created_at=created_at,
    )


def update_json(update_id, status, created_at, body="", incident_id="inc1"):
    return {
        "id": update_id,
        "incident_id": incident_id,
        "status": status,
        "body": body,
        "created_at": created_at.isoformat().replace("+00:00", "Z"),
    }


@pytest.fixture
def settings():
    return Settings(slack_token="xoxb-test")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher(gateway, settings):
    return NotificationDispatcher(gateway, ChannelResolver(gateway), settings)


@pytest.fixture
def general():
    return Channel(id="C1", name="#general")
