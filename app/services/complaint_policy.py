"""
Complaint Policy Engine - pure derivation rules for SOS complaints.

Nothing in this module touches the database. Derived fields are recomputed
whenever urgency, category or the emergency flag change, so they are always
consistent with these tables.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from app.models.complaint import ComplaintCategory, ComplaintStatus, Department, Priority, Urgency
from app.utils.firestore_helpers import parse_timestamp, utc_now


DEPARTMENT_BY_CATEGORY: Dict[str, str] = {
    ComplaintCategory.FIRE_EMERGENCY.value: Department.FIRE_DEPARTMENT.value,
    ComplaintCategory.MEDICAL_HELP.value: Department.MEDICAL_EMERGENCY.value,
    ComplaintCategory.ACCIDENT.value: Department.TRAFFIC_POLICE.value,
    ComplaintCategory.TRAFFIC_VIOLATION.value: Department.TRAFFIC_POLICE.value,
    ComplaintCategory.THEFT_ROBBERY.value: Department.POLICE.value,
    ComplaintCategory.HARASSMENT.value: Department.POLICE.value,
    ComplaintCategory.FRAUD.value: Department.POLICE.value,
    ComplaintCategory.MISSING_PERSON.value: Department.TOURIST_POLICE.value,
}

# Safety score configuration
SAFETY_WINDOW_DAYS = 30
SAFETY_BASE_SCORE = 100
SAFETY_PENALTY_PER_COMPLAINT = 10
SAFETY_PENALTY_PER_EMERGENCY = 20
SAFETY_PENALTY_PER_UNRESOLVED = 15

SETTLED_STATUSES = frozenset({ComplaintStatus.RESOLVED.value, ComplaintStatus.CLOSED.value})


def derive_priority(urgency: str, is_emergency_sos: bool = False) -> str:
    """First match wins; an emergency SOS is always critical."""
    if urgency == Urgency.CRITICAL.value or is_emergency_sos:
        return Priority.CRITICAL.value
    if urgency == Urgency.HIGH.value:
        return Priority.HIGH.value
    if urgency == Urgency.MEDIUM.value:
        return Priority.NORMAL.value
    return Priority.LOW.value


def derive_department(category: str) -> str:
    return DEPARTMENT_BY_CATEGORY.get(category, Department.GENERAL.value)


def apply_policy(complaint) -> None:
    """Recompute priority and assigned_department on a Complaint in place."""
    complaint.priority = derive_priority(complaint.urgency, complaint.is_emergency_sos)
    complaint.assigned_department = derive_department(complaint.category)


def complaint_reference(created_at: datetime, complaint_id: str) -> str:
    """
    Human-readable complaint number: SOS + year + month + last six id chars.

    Example: created 2024-03-15, id ending in "abc123" → "SOS202403ABC123".
    """
    created = parse_timestamp(created_at)
    return f"SOS{created.year}{created.month:02d}{str(complaint_id)[-6:].upper()}"


def calculate_safety_score(complaints: Iterable, now: Optional[datetime] = None) -> int:
    """
    Safety score for a tourist based on complaint history.

    Starts at 100; every complaint from the last 30 days costs 10 points,
    emergencies a further 20 and unresolved ones a further 15. Clamped to
    [0, 100].
    """
    now = now or utc_now()
    window_start = now - timedelta(days=SAFETY_WINDOW_DAYS)

    score = SAFETY_BASE_SCORE
    for complaint in complaints:
        created_at = parse_timestamp(_value(complaint, "created_at"))
        if created_at is None or created_at <= window_start:
            continue
        score -= SAFETY_PENALTY_PER_COMPLAINT
        if _value(complaint, "is_emergency_sos"):
            score -= SAFETY_PENALTY_PER_EMERGENCY
        if _value(complaint, "status") not in SETTLED_STATUSES:
            score -= SAFETY_PENALTY_PER_UNRESOLVED

    return max(0, min(SAFETY_BASE_SCORE, score))


def risk_level(safety_score: int) -> str:
    if safety_score < 30:
        return "high"
    if safety_score < 70:
        return "medium"
    return "low"


def _value(complaint, field: str):
    # Accepts Complaint models as well as raw Firestore dicts
    if isinstance(complaint, dict):
        return complaint.get(field)
    return getattr(complaint, field, None)
