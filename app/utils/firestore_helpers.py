"""
Firestore query helpers shared by the services.

NOTE: For firebase_admin SDK, we use positional arguments for where() which
still work. The deprecation warning is just a warning - the functionality is
still supported.
"""

import math
from datetime import datetime, timezone
from typing import Dict, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "user_id", "==", user_id)
        query = where_filter(query, "status", "==", "submitted")
    """
    return query.where(field_path, op_string, value)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse various timestamp formats to timezone-aware datetime (UTC).

    CRITICAL: All datetimes must be timezone-aware to prevent comparison bugs.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    # Firestore Timestamp interface
    if hasattr(value, 'timestamp'):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_pagination(total: int, page: int, limit: int) -> Dict:
    """Pagination block returned alongside every paginated list."""
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    R = 6371000
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c
