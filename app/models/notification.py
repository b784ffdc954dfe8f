"""
Notification models.
Notifications are created as side effects of complaint transitions and are
only ever mutated by their recipient (read/unread).
"""

from pydantic import Field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum

from app.models.base import CamelModel
from app.utils.firestore_helpers import utc_now


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    EMERGENCY = "emergency"
    HEALTH = "health"
    SAFETY = "safety"
    TRAVEL = "travel"
    WEATHER = "weather"
    ALERT = "alert"


class NotificationCategory(str, Enum):
    SAFETY = "safety"
    GROUP = "group"
    HEALTH = "health"
    EMERGENCY = "emergency"
    TRAVEL = "travel"
    WEATHER = "weather"
    SYSTEM = "system"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Inbox ordering: most urgent first
PRIORITY_RANK = {
    NotificationPriority.CRITICAL.value: 3,
    NotificationPriority.HIGH.value: 2,
    NotificationPriority.MEDIUM.value: 1,
    NotificationPriority.LOW.value: 0,
}


class NotificationCreate(CamelModel):
    """Creation contract accepted by the notification sink."""
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.SYSTEM
    priority: NotificationPriority = NotificationPriority.MEDIUM
    related_id: Optional[str] = None
    related_type: Optional[str] = None
    action_required: bool = False
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Notification(NotificationCreate):
    """Stored notification (collection "notifications")."""
    id: str
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
