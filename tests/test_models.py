"""
Tests for parsing Statuspage incident and webhook JSON.
"""

from datetime import datetime, timezone

import pytest

from conftest import T1, T2, update_json
from models.incident import Incident, IncidentUpdate, Notification, parse_timestamp


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-06-02T10:00:00Z") == T1

    def test_offset_is_normalised_to_utc(self):
        parsed = parse_timestamp("2024-06-02T03:00:00-07:00")
        assert parsed == T1
        assert parsed.tzinfo == timezone.utc

    def test_fractional_seconds(self):
        parsed = parse_timestamp("2024-06-02T10:00:00.123Z")
        assert parsed.microsecond == 123000

    def test_naive_is_taken_as_utc(self):
        assert parse_timestamp("2024-06-02T10:00:00") == T1


class TestIncidentUpdate:
    def test_from_dict(self):
        update = IncidentUpdate.from_dict(update_json("u1", "investigating", T1, body="Looking"))
        assert update.id == "u1"
        assert update.incident_id == "inc1"
        assert update.status == "investigating"
        assert update.body == "Looking"
        assert update.created_at == T1

    def test_created_unix(self):
        update = IncidentUpdate.from_dict(update_json("u1", "resolved", T1))
        assert update.created_unix == int(T1.timestamp())

    def test_incident_id_falls_back_to_parent(self):
        raw = update_json("u1", "resolved", T1)
        del raw["incident_id"]
        update = IncidentUpdate.from_dict(raw, incident_id="parent")
        assert update.incident_id == "parent"

    def test_missing_created_at_is_rejected(self):
        raw = update_json("u1", "resolved", T1)
        raw["created_at"] = None
        with pytest.raises(ValueError, match="created_at"):
            IncidentUpdate.from_dict(raw)

    def test_missing_id_is_rejected(self):
        raw = update_json("u1", "resolved", T1)
        del raw["id"]
        with pytest.raises(ValueError):
            IncidentUpdate.from_dict(raw)

    def test_null_body_becomes_empty(self):
        raw = update_json("u1", "resolved", T1)
        raw["body"] = None
        assert IncidentUpdate.from_dict(raw).body == ""


class TestIncident:
    def test_chronological_updates_sorts_newest_first_input(self):
        incident = Incident.from_dict({
            "id": "inc1",
            "name": "API degraded",
            "incident_updates": [
                update_json("u2", "resolved", T2),
                update_json("u1", "investigating", T1),
            ],
        })
        assert [u.id for u in incident.chronological_updates()] == ["u1", "u2"]

    def test_chronological_updates_keeps_already_sorted_input(self):
        incident = Incident.from_dict({
            "id": "inc1",
            "name": "API degraded",
            "incident_updates": [
                update_json("u1", "investigating", T1),
                update_json("u2", "resolved", T2),
            ],
        })
        assert [u.id for u in incident.chronological_updates()] == ["u1", "u2"]

    def test_updates_must_be_a_list(self):
        with pytest.raises(ValueError):
            Incident.from_dict({"id": "inc1", "incident_updates": {"oops": 1}})

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            Incident.from_dict(["nope"])

    def test_optional_fields(self):
        incident = Incident.from_dict({
            "id": "inc1",
            "name": "Outage",
            "status": "resolved",
            "shortlink": "https://stspg.io/x",
            "created_at": "2024-06-02T10:00:00Z",
        })
        assert incident.created_at == T1
        assert incident.updated_at is None
        assert incident.incident_updates == ()


class TestNotification:
    def test_from_dict(self):
        notification = Notification.from_dict({
            "meta": {"unsubscribe": "x", "generated_at": "2024-06-02T11:30:00Z"},
            "page": {"id": "p1", "status_indicator": "minor", "status_description": "Minor"},
            "incident": {
                "id": "inc1",
                "name": "API degraded",
                "incident_updates": [update_json("u1", "investigating", T1)],
            },
        })
        assert notification.page_id == "p1"
        assert notification.status_indicator == "minor"
        assert notification.generated_at == T2
        assert notification.incident.name == "API degraded"

    def test_requires_incident(self):
        with pytest.raises(ValueError, match="incident"):
            Notification.from_dict({"meta": {}})
