from datetime import datetime, timedelta, timezone

import pytest

from app.models.complaint import Complaint
from app.services import authority_view

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_complaint(**overrides) -> Complaint:
    data = {
        "id": "65f4a0c1d2e3f4a5b6abc123",
        "user_id": "tourist-1",
        "category": "theft_robbery",
        "title": "Wallet stolen",
        "description": "Taken near the ghat",
        "urgency": "high",
        "contact_info": "+1-555-0100",
        "location": {"address": "Dashashwamedh Ghat", "coordinates": [83.0104, 25.3066]},
        "created_at": NOW - timedelta(minutes=30),
    }
    data.update(overrides)
    return Complaint(**data)


def test_to_lat_lng_swaps_stored_order():
    # stored as [longitude, latitude]
    assert authority_view.to_lat_lng([83.0104, 25.3066]) == {"lat": 25.3066, "lng": 83.0104}


def test_to_lat_lng_missing_coordinates():
    assert authority_view.to_lat_lng(None) is None
    assert authority_view.to_lat_lng([]) is None


@pytest.mark.parametrize("category,expected", [
    ("missing_person", "lost_tourist"),
    ("fire_emergency", "emergency"),
    ("theft_robbery", "theft"),
    ("medical_help", "medical_emergency"),
    ("general_help", "panic_button"),
    ("harassment", "suspicious_activity"),
    ("noise_complaint", "suspicious_activity"),
    ("traffic_violation", "accident"),
    ("other", "panic_button"),
    ("unknown", "panic_button"),
])
def test_alert_type(category, expected):
    assert authority_view.alert_type(category) == expected


@pytest.mark.parametrize("status,expected", [
    ("submitted", "active"),
    ("under_review", "acknowledged"),
    ("assigned", "acknowledged"),
    ("in_progress", "acknowledged"),
    ("resolved", "resolved"),
    ("closed", "resolved"),
    ("rejected", "resolved"),
    ("escalated", "escalated"),
    ("unknown", "active"),
])
def test_display_status(status, expected):
    assert authority_view.display_status(status) == expected


def test_severity_defaults_to_medium():
    assert authority_view.severity("critical") == "critical"
    assert authority_view.severity(None) == "medium"


def test_to_alert_projection():
    complaint = make_complaint(is_emergency_sos=True, emergency_response_time=4.5, assigned_to="officer-9")
    users = {"tourist-1": {"username": "Asha", "email": "asha@example.com", "phone": "+1-555-0100"}}

    alert = authority_view.to_alert(complaint, users)

    assert alert["complaintId"] == "SOS202406ABC123"
    assert alert["type"] == "theft"
    assert alert["severity"] == "high"
    assert alert["status"] == "active"
    assert alert["coordinates"] == {"lat": 25.3066, "lng": 83.0104}
    assert alert["touristName"] == "Asha"
    assert alert["touristPhone"] == "+1-555-0100"
    assert alert["reportedBy"] == "Emergency SOS"
    assert alert["assignedOfficer"] == "Officer Assigned"
    assert alert["responseTime"] == "4.5 min"


def test_to_alert_unknown_tourist():
    alert = authority_view.to_alert(make_complaint(), {})
    assert alert["touristName"] == "Unknown User"
    assert alert["reportedBy"] == "Tourist App"
    assert alert["responseTime"] is None


def test_to_alert_detail_adds_record_details():
    detail = authority_view.to_alert_detail(make_complaint(additional_info="Blue wallet"))
    assert detail["additionalInfo"] == "Blue wallet"
    assert detail["attachments"] == []
    assert detail["escalation"] is None
    assert detail["metadata"]["submissionSource"] == "mobile_app"


def test_to_map_marker():
    marker = authority_view.to_map_marker(make_complaint(), 1234.4)
    assert marker["coordinates"] == {"lat": 25.3066, "lng": 83.0104}
    assert marker["distanceMeters"] == 1234


def test_dashboard_stats():
    complaints = [
        make_complaint(id="a" * 24, urgency="critical", is_emergency_sos=True, emergency_response_time=4.0),
        make_complaint(id="b" * 24, status="resolved", emergency_response_time=6.0),
        make_complaint(id="c" * 24, status="in_progress", category="fraud"),
        # outside the 24h window
        make_complaint(id="d" * 24, created_at=NOW - timedelta(days=3)),
    ]

    stats = authority_view.dashboard_stats(complaints, "24h", now=NOW)

    summary = stats["summary"]
    assert summary["total"] == 3
    assert summary["active"] == 2
    assert summary["critical"] == 1
    assert summary["emergency"] == 1
    assert summary["resolved"] == 1
    assert summary["resolutionRate"] == 33.3
    assert summary["averageResponseTime"] == 5.0
    assert stats["breakdown"]["byStatus"] == {"submitted": 1, "resolved": 1, "in_progress": 1}
    assert stats["breakdown"]["byCategory"] == {"theft_robbery": 2, "fraud": 1}


def test_dashboard_stats_empty_window():
    stats = authority_view.dashboard_stats([], "7d", now=NOW)
    assert stats["summary"]["total"] == 0
    assert stats["summary"]["resolutionRate"] == 0


def test_unknown_timeframe_falls_back_to_24h():
    assert authority_view.normalize_timeframe("2w") == "24h"
    assert authority_view.normalize_timeframe(None) == "24h"
    assert authority_view.timeframe_start("2w", now=NOW) == NOW - timedelta(hours=24)
