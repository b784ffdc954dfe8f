"""
Notification Service - in-app notifications for tourists.

DESIGN PRINCIPLES:
- Creation from the complaint lifecycle is fire-and-forget: notify() never
  raises, failures are logged and the primary state change stands
- Only the recipient reads, marks or deletes a notification
"""

from app.config.firebase import get_db
from app.core.errors import ForbiddenError, NotFoundError
from app.models.notification import Notification, NotificationCreate, PRIORITY_RANK
from app.utils.firestore_helpers import build_pagination, utc_now, where_filter
from collections import Counter
from typing import Dict, List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)

COLLECTION = "notifications"


class NotificationService:
    """
    Service for notification creation and the recipient inbox.
    """

    def __init__(self, db=None):
        self.db = db or get_db()

    def create(self, data: NotificationCreate) -> Notification:
        """Persist a notification. Raises on store failure."""
        notification = Notification(id=uuid.uuid4().hex, **data.model_dump())
        doc_ref = self.db.collection(COLLECTION).document(notification.id)
        doc_ref.set(notification.model_dump(exclude={"id"}))
        logger.info(
            f"Notification created for user {notification.user_id}: "
            f"{notification.title} ({notification.priority})"
        )
        return notification

    def notify(self, **fields) -> Optional[Notification]:
        """
        Best-effort creation used by the complaint lifecycle.
        Returns None instead of raising when anything goes wrong.
        """
        try:
            return self.create(NotificationCreate(**fields))
        except Exception as e:
            logger.error(
                f"Failed to create notification for user {fields.get('user_id')}: {str(e)}",
                exc_info=True
            )
            return None

    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None,
        category: Optional[str] = None,
        is_read: Optional[bool] = None,
        priority: Optional[str] = None,
    ) -> Tuple[List[Dict], Dict]:
        """
        Paginated inbox, most urgent first and newest first within a priority.
        """
        query = where_filter(self.db.collection(COLLECTION), "user_id", "==", user_id)
        if type:
            query = where_filter(query, "type", "==", type)
        if category:
            query = where_filter(query, "category", "==", category)
        if is_read is not None:
            query = where_filter(query, "is_read", "==", is_read)
        if priority:
            query = where_filter(query, "priority", "==", priority)

        notifications = [Notification(id=doc.id, **doc.to_dict()) for doc in query.stream()]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        notifications.sort(key=lambda n: PRIORITY_RANK.get(n.priority, 0), reverse=True)

        total = len(notifications)
        start = (page - 1) * limit
        items = [n.model_dump(by_alias=True, mode="json") for n in notifications[start:start + limit]]
        return items, build_pagination(total, page, limit)

    def unread_count(self, user_id: str) -> int:
        query = where_filter(self.db.collection(COLLECTION), "user_id", "==", user_id)
        query = where_filter(query, "is_read", "==", False)
        return sum(1 for _ in query.stream())

    def stats(self, user_id: str) -> Dict:
        """Inbox totals plus per-type and per-priority counts."""
        query = where_filter(self.db.collection(COLLECTION), "user_id", "==", user_id)
        records = [doc.to_dict() for doc in query.stream()]

        total = len(records)
        unread = sum(1 for r in records if not r.get("is_read"))
        return {
            "total": total,
            "unread": unread,
            "read": total - unread,
            "byType": dict(Counter(r.get("type") for r in records)),
            "byPriority": dict(Counter(r.get("priority") for r in records)),
        }

    def delete(self, notification_id: str, user_id: str) -> None:
        """
        Raises:
            NotFoundError: Unknown notification, or one owned by someone else
        """
        doc_ref = self.db.collection(COLLECTION).document(notification_id)
        doc = doc_ref.get()
        # Someone else's notification looks the same as a missing one
        if not doc.exists or doc.to_dict().get("user_id") != user_id:
            raise NotFoundError("Notification not found")

        doc_ref.delete()
        logger.info(f"Notification {notification_id} deleted by user {user_id}")

    def mark_as_read(self, notification_id: str, user_id: str) -> Dict:
        """
        Raises:
            NotFoundError: Unknown notification
            ForbiddenError: Notification belongs to someone else
        """
        doc_ref = self.db.collection(COLLECTION).document(notification_id)
        doc = doc_ref.get()
        if not doc.exists:
            raise NotFoundError("Notification not found")

        data = doc.to_dict()
        if data.get("user_id") != user_id:
            raise ForbiddenError("You can only read your own notifications")

        read_at = utc_now()
        doc_ref.update({"is_read": True, "read_at": read_at})
        data.update({"is_read": True, "read_at": read_at})
        return Notification(id=doc.id, **data).model_dump(by_alias=True, mode="json")

    def mark_all_as_read(self, user_id: str) -> int:
        query = where_filter(self.db.collection(COLLECTION), "user_id", "==", user_id)
        query = where_filter(query, "is_read", "==", False)

        read_at = utc_now()
        modified = 0
        for doc in query.stream():
            self.db.collection(COLLECTION).document(doc.id).update({"is_read": True, "read_at": read_at})
            modified += 1

        logger.info(f"Marked {modified} notifications as read for user {user_id}")
        return modified


# Global service instance (singleton pattern)
_notification_service = None


def get_notification_service() -> NotificationService:
    """
    Get or create NotificationService singleton instance.
    """
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
