"""
Authority View Adapter - projects complaints into the dashboard "Alert" shape.

Pure transforms: nothing here reads or writes the database. The caller passes
the tourist profiles (keyed by user id) it already looked up.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.models.complaint import Complaint
from app.services.complaint_policy import SETTLED_STATUSES
from app.utils.firestore_helpers import parse_timestamp, utc_now

CATEGORY_TO_TYPE = {
    "missing_person": "lost_tourist",
    "fire_emergency": "emergency",
    "theft_robbery": "theft",
    "accident": "accident",
    "medical_help": "medical_emergency",
    "general_help": "panic_button",
    "harassment": "suspicious_activity",
    "fraud": "suspicious_activity",
    "traffic_violation": "accident",
    "noise_complaint": "suspicious_activity",
    "other": "panic_button",
}

URGENCY_TO_SEVERITY = {
    "low": "low",
    "medium": "medium",
    "high": "high",
    "critical": "critical",
}

STATUS_TO_DISPLAY = {
    "submitted": "active",
    "under_review": "acknowledged",
    "assigned": "acknowledged",
    "in_progress": "acknowledged",
    "resolved": "resolved",
    "closed": "resolved",
    "rejected": "resolved",
    "escalated": "escalated",
}

TIMEFRAMES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIMEFRAME = "24h"

ACTIVE_STATUSES = frozenset({"submitted", "under_review", "assigned", "in_progress"})


def alert_type(category: str) -> str:
    return CATEGORY_TO_TYPE.get(category, "panic_button")


def severity(urgency: str) -> str:
    return URGENCY_TO_SEVERITY.get(urgency, "medium")


def display_status(status: str) -> str:
    return STATUS_TO_DISPLAY.get(status, "active")


def to_lat_lng(coordinates: Optional[List[float]]) -> Optional[Dict[str, float]]:
    """
    Stored [longitude, latitude] → {"lat": ..., "lng": ...}.

    Index 1 is latitude and index 0 is longitude. Every projection goes
    through this function.
    """
    if not coordinates or len(coordinates) != 2:
        return None
    return {"lat": coordinates[1], "lng": coordinates[0]}


def _iso(value) -> Optional[str]:
    value = parse_timestamp(value)
    return value.isoformat() if value else None


def to_alert(complaint: Complaint, users: Optional[Dict[str, Dict]] = None) -> Dict:
    """Dashboard list projection of one complaint."""
    tourist = (users or {}).get(complaint.user_id) or {}
    api = complaint.to_api(include={"communications", "feedback"})

    return {
        "id": complaint.id,
        "complaintId": complaint.complaint_id,
        "type": alert_type(complaint.category),
        "severity": severity(complaint.urgency),
        "status": display_status(complaint.status),
        "complaintStatus": complaint.status,
        "touristId": complaint.user_id,
        "touristName": tourist.get("username") or "Unknown User",
        "touristEmail": tourist.get("email"),
        "touristPhone": tourist.get("phone"),
        "location": complaint.location.address,
        "coordinates": to_lat_lng(complaint.location.coordinates),
        "timestamp": _iso(complaint.created_at),
        "title": complaint.title,
        "description": complaint.description,
        "contactInfo": complaint.contact_info,
        "reportedBy": "Emergency SOS" if complaint.is_emergency_sos else "Tourist App",
        "assignedOfficer": "Officer Assigned" if complaint.assigned_to else None,
        "assignedDepartment": complaint.assigned_department,
        "priority": complaint.priority,
        "responseTime": (
            f"{complaint.emergency_response_time} min"
            if complaint.emergency_response_time is not None else None
        ),
        "notes": complaint.resolution.resolution_notes,
        "isEmergencySOS": complaint.is_emergency_sos,
        "sosActivatedAt": _iso(complaint.sos_activated_at),
        "communications": api["communications"],
        "feedback": api["feedback"],
    }


def to_alert_detail(complaint: Complaint, users: Optional[Dict[str, Dict]] = None) -> Dict:
    """Single-complaint projection: the alert plus the full record details."""
    alert = to_alert(complaint, users)
    api = complaint.to_api(include={"attachments", "metadata", "escalation", "resolution"})
    alert.update({
        "additionalInfo": complaint.additional_info,
        "attachments": api["attachments"],
        "metadata": api["metadata"],
        "escalation": api["escalation"],
        "resolution": api["resolution"],
    })
    return alert


def to_map_marker(complaint: Complaint, distance_meters: Optional[float] = None, users: Optional[Dict[str, Dict]] = None) -> Dict:
    tourist = (users or {}).get(complaint.user_id) or {}
    marker = {
        "id": complaint.id,
        "type": alert_type(complaint.category),
        "severity": severity(complaint.urgency),
        "status": display_status(complaint.status),
        "touristName": tourist.get("username") or "Unknown User",
        "location": complaint.location.address,
        "coordinates": to_lat_lng(complaint.location.coordinates),
        "timestamp": _iso(complaint.created_at),
        "isEmergencySOS": complaint.is_emergency_sos,
    }
    if distance_meters is not None:
        marker["distanceMeters"] = round(distance_meters)
    return marker


def normalize_timeframe(timeframe: Optional[str]) -> str:
    """Known window key, or the 24h default for anything unrecognised."""
    if timeframe in TIMEFRAMES:
        return timeframe
    return DEFAULT_TIMEFRAME


def timeframe_start(timeframe: Optional[str], now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) - TIMEFRAMES[normalize_timeframe(timeframe)]


def dashboard_stats(complaints: Iterable[Complaint], timeframe: Optional[str] = None, now: Optional[datetime] = None) -> Dict:
    """
    Summary and breakdown counts over complaints created inside the window.

    resolutionRate is resolved (or closed) / total × 100 to one decimal.
    averageResponseTime averages only complaints with a recorded
    emergency_response_time.
    """
    since = timeframe_start(timeframe, now)
    window = [c for c in complaints if parse_timestamp(c.created_at) >= since]

    total = len(window)
    resolved = sum(1 for c in window if c.status in SETTLED_STATUSES)
    response_times = [c.emergency_response_time for c in window if c.emergency_response_time is not None]

    return {
        "summary": {
            "total": total,
            "active": sum(1 for c in window if c.status in ACTIVE_STATUSES),
            "critical": sum(1 for c in window if c.urgency == "critical"),
            "emergency": sum(1 for c in window if c.is_emergency_sos),
            "resolved": resolved,
            "resolutionRate": round(resolved / total * 100, 1) if total else 0,
            "averageResponseTime": (
                round(sum(response_times) / len(response_times), 1) if response_times else 0
            ),
        },
        "breakdown": {
            "byStatus": dict(Counter(c.status for c in window)),
            "byCategory": dict(Counter(c.category for c in window)),
            "byUrgency": dict(Counter(c.urgency for c in window)),
        },
    }
