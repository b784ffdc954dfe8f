"""
Notification endpoints - the authenticated user's inbox.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.errors import ServiceError
from app.models.notification import NotificationCategory, NotificationPriority, NotificationType
from app.models.user import CurrentUser
from app.services.notification_service import get_notification_service
from app.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[NotificationType] = None,
    category: Optional[NotificationCategory] = None,
    is_read: Optional[bool] = Query(None, alias="isRead"),
    priority: Optional[NotificationPriority] = None,
    user: CurrentUser = Depends(get_current_user)
):
    try:
        service = get_notification_service()
        notifications, pagination = service.list_for_user(
            user.id,
            page=page,
            limit=limit,
            type=type.value if type else None,
            category=category.value if category else None,
            is_read=is_read,
            priority=priority.value if priority else None,
        )
        return {
            "message": "Notifications retrieved successfully",
            "notifications": notifications,
            "unreadCount": service.unread_count(user.id),
            "pagination": pagination,
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /notifications failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching notifications"
        )


@router.get("/unread-count")
async def unread_count(user: CurrentUser = Depends(get_current_user)):
    try:
        return {
            "message": "Unread count retrieved successfully",
            "unreadCount": get_notification_service().unread_count(user.id),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /notifications/unread-count failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching unread count"
        )


@router.get("/stats")
async def notification_stats(user: CurrentUser = Depends(get_current_user)):
    try:
        return {
            "message": "Notification statistics retrieved successfully",
            "stats": get_notification_service().stats(user.id),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /notifications/stats failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching notification statistics"
        )


@router.patch("/mark-all-read")
async def mark_all_read(user: CurrentUser = Depends(get_current_user)):
    try:
        modified = get_notification_service().mark_all_as_read(user.id)
        return {
            "message": "All notifications marked as read",
            "modifiedCount": modified,
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"PATCH /notifications/mark-all-read failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while marking notifications as read"
        )


@router.patch("/{notification_id}/read")
async def mark_read(notification_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        notification = get_notification_service().mark_as_read(notification_id, user.id)
        return {
            "message": "Notification marked as read",
            "notification": notification,
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"PATCH /notifications/{notification_id}/read failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while marking notification as read"
        )


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        get_notification_service().delete(notification_id, user.id)
        return {"message": "Notification deleted successfully"}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"DELETE /notifications/{notification_id} failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while deleting notification"
        )
