"""
Tourist SOS endpoints - submit help requests, follow them, talk to authorities.

Every route acts on behalf of the authenticated tourist and only ever exposes
that tourist's own complaints.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.core.errors import ServiceError
from app.core.settings import settings
from app.models.complaint import (
    CancelRequest,
    CommunicationCreate,
    ComplaintCategory,
    ComplaintCreate,
    ComplaintStatus,
    DeviceInfo,
    EmergencyCreate,
    FeedbackCreate,
    SubmissionMetadata,
    Urgency,
)
from app.models.user import CurrentUser
from app.services.complaint_service import get_complaint_service
from app.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sos", tags=["SOS"])


def submission_metadata(request: Request) -> SubmissionMetadata:
    """Device and network details captured from the submitting request."""
    return SubmissionMetadata(
        device_info=DeviceInfo(
            user_agent=request.headers.get("user-agent"),
            platform=request.headers.get("x-platform"),
            app_version=request.headers.get("x-app-version"),
        ),
        ip_address=request.client.host if request.client else None,
    )


@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def submit_complaint(
    payload: ComplaintCreate,
    request: Request,
    user: CurrentUser = Depends(get_current_user)
):
    """
    Submit a help request.

    priority and assignedDepartment are derived server-side from urgency,
    category and the SOS flag.
    """
    try:
        logger.info(f"POST /sos/submit - user={user.id}, category={payload.category}")
        complaint = get_complaint_service().submit(user, payload, submission_metadata(request))
        return {
            "message": "Help request submitted successfully",
            "complaint": complaint.public_summary(),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"POST /sos/submit failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while submitting help request"
        )


@router.post("/emergency", status_code=status.HTTP_201_CREATED)
async def emergency_sos(
    request: Request,
    payload: Optional[EmergencyCreate] = None,
    user: CurrentUser = Depends(get_current_user)
):
    """One-tap emergency SOS. The body is optional."""
    try:
        logger.warning(f"POST /sos/emergency - user={user.id}")
        complaint, eta = get_complaint_service().submit_emergency(user, payload, submission_metadata(request))
        return {
            "message": "Emergency SOS activated successfully",
            "complaint": {
                "id": complaint.id,
                "complaintId": complaint.complaint_id,
                "status": complaint.status,
                "sosActivatedAt": complaint.sos_activated_at.isoformat(),
                "emergencyResponseETA": eta,
            },
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"POST /sos/emergency failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while activating emergency SOS"
        )


@router.get("/")
async def list_my_complaints(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=100),
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    category: Optional[ComplaintCategory] = None,
    urgency: Optional[Urgency] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: CurrentUser = Depends(get_current_user)
):
    try:
        complaints, pagination = get_complaint_service().list_for_user(
            user.id,
            page=page,
            limit=limit,
            status=status_filter.value if status_filter else None,
            category=category.value if category else None,
            urgency=urgency.value if urgency else None,
            start_date=start_date,
            end_date=end_date,
        )
        return {
            "message": "Complaints retrieved successfully",
            "complaints": complaints,
            "pagination": pagination,
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /sos failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching complaints"
        )


@router.get("/stats/user")
async def my_stats(user: CurrentUser = Depends(get_current_user)):
    try:
        return {
            "message": "User statistics retrieved successfully",
            "stats": get_complaint_service().user_stats(user.id),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /sos/stats/user failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching statistics"
        )


@router.get("/{complaint_id}")
async def get_my_complaint(complaint_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        complaint = get_complaint_service().get_for_user(complaint_id, user.id)
        return {
            "message": "Complaint retrieved successfully",
            "complaint": complaint.to_api(),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"GET /sos/{complaint_id} failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while fetching complaint"
        )


@router.post("/{complaint_id}/communication", status_code=status.HTTP_201_CREATED)
async def add_message(
    complaint_id: str,
    payload: CommunicationCreate,
    user: CurrentUser = Depends(get_current_user)
):
    try:
        entry = get_complaint_service().add_communication(
            complaint_id, "user", payload.message, user_id=user.id
        )
        return {
            "message": "Message added successfully",
            "communication": entry.model_dump(by_alias=True, mode="json"),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"POST /sos/{complaint_id}/communication failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while adding message"
        )


@router.post("/{complaint_id}/feedback")
async def submit_feedback(
    complaint_id: str,
    payload: FeedbackCreate,
    user: CurrentUser = Depends(get_current_user)
):
    try:
        feedback = get_complaint_service().submit_feedback(
            complaint_id, user.id, payload.rating, payload.comment
        )
        return {
            "message": "Feedback submitted successfully",
            "feedback": feedback.model_dump(by_alias=True, mode="json"),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"POST /sos/{complaint_id}/feedback failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while submitting feedback"
        )


@router.patch("/{complaint_id}/cancel")
async def cancel_complaint(
    complaint_id: str,
    payload: Optional[CancelRequest] = None,
    user: CurrentUser = Depends(get_current_user)
):
    try:
        reason = payload.reason if payload else None
        complaint = get_complaint_service().cancel(complaint_id, user.id, reason)
        return {
            "message": "Complaint cancelled successfully",
            "complaint": {"id": complaint.id, "complaintId": complaint.complaint_id, "status": complaint.status},
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.error(f"PATCH /sos/{complaint_id}/cancel failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while cancelling complaint"
        )
