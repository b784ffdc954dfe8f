"""
Complaint Store - Firestore access for SOS complaints.

Every update is a compare-and-swap: the write carries a precondition on the
update_time of the snapshot it was derived from, so two concurrent
read-modify-write cycles on one complaint can never silently overwrite each
other. The loser gets ConcurrentModification; nothing is retried.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
import secrets
import logging

from google.api_core.exceptions import FailedPrecondition

from app.config.firebase import get_db
from app.core.errors import ConcurrentModification, NotFoundError
from app.models.complaint import Complaint
from app.utils.firestore_helpers import (
    build_pagination,
    haversine_meters,
    parse_timestamp,
    utc_now,
    where_filter,
)

logger = logging.getLogger(__name__)

COLLECTION = "sos_complaints"

# Fields accepted as sortBy on listings
SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "priority": "priority",
    "urgency": "urgency",
    "status": "status",
    "category": "category",
}

_PRIORITY_ORDER = {"low": 0, "normal": 1, "high": 2, "critical": 3}
_URGENCY_ORDER = {"low": 0, "medium": 1, "high": 2, "critical": 3}


def new_complaint_id() -> str:
    """24 hex characters, so the last six are always hex digits."""
    return secrets.token_hex(12)


class ComplaintStore:
    """
    Keyed collection of Complaint records.
    Soft-deleted complaints are excluded from every read except get(include_deleted=True).
    """

    def __init__(self, db=None):
        self.db = db or get_db()

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def create(self, complaint: Complaint) -> Complaint:
        doc_ref = self.collection.document(complaint.id)
        try:
            doc_ref.set(complaint.to_document())
        except Exception as e:
            logger.error(f"Failed to save complaint to Firestore: {e}", exc_info=True)
            raise
        logger.info(f"Complaint saved to Firestore: {complaint.id} ({complaint.complaint_id})")
        return complaint

    def get(self, complaint_id: str, include_deleted: bool = False) -> Tuple[Complaint, datetime]:
        """
        Load a complaint together with the update_time used as CAS token.

        Raises:
            NotFoundError: If the complaint does not exist or is soft-deleted
        """
        doc = self.collection.document(complaint_id).get()
        if not doc.exists:
            raise NotFoundError("Complaint not found")

        complaint = Complaint.from_document(doc.id, doc.to_dict())
        if complaint.is_deleted and not include_deleted:
            raise NotFoundError("Complaint not found")
        return complaint, doc.update_time

    def save(self, complaint: Complaint, expected_update_time: datetime) -> Complaint:
        """
        Write back a complaint previously loaded with get().

        Raises:
            ConcurrentModification: If the document changed since it was read
        """
        complaint.updated_at = utc_now()
        complaint.version += 1
        doc_ref = self.collection.document(complaint.id)
        try:
            doc_ref.update(
                complaint.to_document(),
                option=self.db.write_option(last_update_time=expected_update_time),
            )
        except FailedPrecondition:
            logger.warning(f"Concurrent update detected on complaint {complaint.id}")
            raise ConcurrentModification(
                "Complaint was modified by another request. Reload and try again."
            )
        return complaint

    def mutate(self, complaint_id: str, change: Callable[[Complaint], None]) -> Complaint:
        """Read-modify-write helper: load, apply change, CAS-save."""
        complaint, update_time = self.get(complaint_id)
        change(complaint)
        return self.save(complaint, update_time)

    def find(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        urgency: Optional[str] = None,
        assigned_department: Optional[str] = None,
        is_emergency: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        created_after: Optional[datetime] = None,
    ) -> List[Complaint]:
        """
        Fetch complaints matching every given filter.

        Equality filters run in Firestore (no composite index needed);
        date range and text search are applied in Python.
        """
        query = where_filter(self.collection, "is_deleted", "==", False)

        equality_filters = {
            "user_id": user_id,
            "status": status,
            "category": category,
            "urgency": urgency,
            "assigned_department": assigned_department,
            "is_emergency_sos": is_emergency,
        }
        for field_path, value in equality_filters.items():
            if value is not None:
                query = where_filter(query, field_path, "==", value)

        lower_bound = max(
            [d for d in (parse_timestamp(start_date), parse_timestamp(created_after)) if d is not None],
            default=None,
        )
        upper_bound = parse_timestamp(end_date)
        needle = search.strip().lower() if search and search.strip() else None

        complaints = []
        for doc in query.stream():
            complaint = Complaint.from_document(doc.id, doc.to_dict())
            created_at = parse_timestamp(complaint.created_at)
            if lower_bound and created_at < lower_bound:
                continue
            if upper_bound and created_at > upper_bound:
                continue
            if needle and not _matches_search(complaint, needle):
                continue
            complaints.append(complaint)

        return complaints

    def find_page(
        self,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        **filters,
    ) -> Tuple[List[Complaint], Dict]:
        """Filtered, sorted and paginated listing with its pagination block."""
        complaints = self.find(**filters)
        complaints = sort_complaints(complaints, sort_by, sort_order)

        total = len(complaints)
        start = (page - 1) * limit
        return complaints[start:start + limit], build_pagination(total, page, limit)

    def find_nearby(self, latitude: float, longitude: float, radius_meters: float) -> List[Tuple[Complaint, float]]:
        """
        Complaints within radius_meters of a point, nearest first.
        Stored coordinates are [longitude, latitude].
        """
        nearby = []
        for complaint in self.find():
            coordinates = complaint.location.coordinates
            if not coordinates:
                continue
            distance = haversine_meters(latitude, longitude, coordinates[1], coordinates[0])
            if distance <= radius_meters:
                nearby.append((complaint, distance))

        nearby.sort(key=lambda item: item[1])
        return nearby


def sort_complaints(complaints: List[Complaint], sort_by: str = "createdAt", sort_order: str = "desc") -> List[Complaint]:
    field = SORTABLE_FIELDS.get(sort_by, "created_at")
    reverse = sort_order != "asc"

    def key(complaint: Complaint):
        value = getattr(complaint, field)
        if field == "priority":
            return _PRIORITY_ORDER.get(value, 0)
        if field == "urgency":
            return _URGENCY_ORDER.get(value, 0)
        if isinstance(value, datetime):
            return parse_timestamp(value)
        return value or ""

    return sorted(complaints, key=key, reverse=reverse)


def _matches_search(complaint: Complaint, needle: str) -> bool:
    haystacks = (
        complaint.title,
        complaint.description,
        complaint.location.address,
        complaint.contact_info,
    )
    return any(needle in (text or "").lower() for text in haystacks)


# Global store instance (singleton pattern)
_complaint_store = None


def get_complaint_store() -> ComplaintStore:
    global _complaint_store
    if _complaint_store is None:
        _complaint_store = ComplaintStore()
    return _complaint_store
