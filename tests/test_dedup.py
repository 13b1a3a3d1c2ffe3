"""
Tests for the channel-history duplicate check.
"""

import asyncio

import pytest

from conftest import T1, T2, FakeGateway, make_update
from core.dedup import DedupProbe
from core.errors import ProbeError

INCIDENT_URL = "https://buildkitestatus.com/incidents/inc1"


def _probe_contains(gateway, settings, update, channel):
    probe = DedupProbe(gateway, settings)
    return asyncio.run(probe.contains(update, channel))


class TestModernMatch:
    def test_matches_callback_id(self, settings, general):
        gateway = FakeGateway(histories={"C1": [
            {"bot_id": "B1", "attachments": [{"callback_id": "u1"}]},
        ]})
        assert _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_other_callback_id_does_not_match(self, settings, general):
        gateway = FakeGateway(histories={"C1": [
            {"bot_id": "B1", "attachments": [{"callback_id": "u2"}]},
        ]})
        assert not _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_user_messages_are_ignored(self, settings, general):
        """Someone pasting an attachment into the channel is not a post by us."""
        gateway = FakeGateway(histories={"C1": [
            {"user": "U123", "attachments": [{"callback_id": "u1"}]},
        ]})
        assert not _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_empty_history(self, settings, general):
        assert not _probe_contains(FakeGateway(), settings, make_update("u1", "resolved", T1), general)


class TestLegacyMatch:
    @pytest.mark.parametrize("ts", [int(T1.timestamp()), str(int(T1.timestamp())), float(int(T1.timestamp()))])
    def test_title_link_and_ts(self, settings, general, ts):
        gateway = FakeGateway(histories={"C1": [
            {"attachments": [{"title_link": INCIDENT_URL, "ts": ts}]},
        ]})
        assert _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_title_link_with_other_ts(self, settings, general):
        gateway = FakeGateway(histories={"C1": [
            {"attachments": [{"title_link": INCIDENT_URL, "ts": int(T2.timestamp())}]},
        ]})
        assert not _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_ts_with_other_title_link(self, settings, general):
        gateway = FakeGateway(histories={"C1": [
            {"attachments": [{
                "title_link": "https://buildkitestatus.com/incidents/other",
                "ts": int(T1.timestamp()),
            }]},
        ]})
        assert not _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_garbage_ts(self, settings, general):
        gateway = FakeGateway(histories={"C1": [
            {"attachments": [{"title_link": INCIDENT_URL, "ts": "soon"}]},
        ]})
        assert not _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)


class TestProbeBehaviour:
    def test_history_failure_raises_probe_error(self, settings, general):
        gateway = FakeGateway()
        gateway.fail_history.add("C1")
        with pytest.raises(ProbeError):
            _probe_contains(gateway, settings, make_update("u1", "resolved", T1), general)

    def test_history_is_fetched_once_per_probe(self, settings, general):
        gateway = FakeGateway()
        probe = DedupProbe(gateway, settings)

        async def check_twice():
            await probe.contains(make_update("u1", "investigating", T1), general)
            await probe.contains(make_update("u2", "resolved", T2), general)

        asyncio.run(check_twice())
        assert gateway.history_calls == ["C1"]

    def test_remember_makes_posted_attachment_visible(self, settings, general):
        gateway = FakeGateway()
        probe = DedupProbe(gateway, settings)
        update = make_update("u1", "resolved", T1)

        async def post_then_check():
            assert not await probe.contains(update, general)
            probe.remember(general, {"callback_id": "u1"})
            return await probe.contains(update, general)

        assert asyncio.run(post_then_check())
        assert gateway.history_calls == ["C1"]
