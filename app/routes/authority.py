"""
Authority endpoints - dashboard view and complaint handling for officers.

DESIGN PRINCIPLES:
- Every route requires the authority or admin role
- Responses use the dashboard "Alert" projection, never raw documents
- Status changes go through the lifecycle service and its transition graph
- Deletion is soft; nothing is ever removed from the store
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.errors import ServiceError
from app.core.settings import settings
from app.models.complaint import (
    AcknowledgeRequest,
    AssignRequest,
    AuthorityCommunicationCreate,
    ComplaintCategory,
    ComplaintStatus,
    Department,
    EscalateRequest,
    ResolveRequest,
    StatusChangeRequest,
    Urgency,
)
from app.models.user import CurrentUser
from app.services import authority_view
from app.services.complaint_service import get_complaint_service
from app.services.complaint_store import SORTABLE_FIELDS
from app.services.user_service import get_user_service
from app.utils.security import require_authority

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/authority", tags=["Authority"])


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Authority {action} failed: {str(e)}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Server error while {action}"
    )


def _summary(complaint) -> dict:
    return {
        "id": complaint.id,
        "complaintId": complaint.complaint_id,
        "status": complaint.status,
        "displayStatus": authority_view.display_status(complaint.status),
        "updatedAt": complaint.updated_at.isoformat(),
    }


@router.get("/complaints")
async def list_complaints(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.AUTHORITY_PAGE_LIMIT, ge=1, le=100),
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    category: Optional[ComplaintCategory] = None,
    urgency: Optional[Urgency] = None,
    assigned_department: Optional[Department] = Query(None, alias="assignedDepartment"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    is_emergency: Optional[bool] = Query(None, alias="isEmergency"),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    officer: CurrentUser = Depends(require_authority)
):
    """
    All complaints for the dashboard, filtered, searched, sorted and paginated.
    search matches title, description, address and contact info.
    """
    try:
        if sort_by not in SORTABLE_FIELDS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid sortBy. Expected one of: {', '.join(SORTABLE_FIELDS)}"
            )

        service = get_complaint_service()
        complaints, pagination = service.store.find_page(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            status=status_filter.value if status_filter else None,
            category=category.value if category else None,
            urgency=urgency.value if urgency else None,
            assigned_department=assigned_department.value if assigned_department else None,
            is_emergency=is_emergency,
            start_date=start_date,
            end_date=end_date,
            search=search,
        )
        users = get_user_service().get_users(c.user_id for c in complaints)

        return {
            "message": "Complaints retrieved successfully",
            "complaints": [authority_view.to_alert(c, users) for c in complaints],
            "pagination": pagination,
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("fetching complaints", e)


@router.get("/complaints/stats")
async def complaint_stats(
    timeframe: str = Query(authority_view.DEFAULT_TIMEFRAME),
    officer: CurrentUser = Depends(require_authority)
):
    try:
        timeframe = authority_view.normalize_timeframe(timeframe)
        since = authority_view.timeframe_start(timeframe)
        complaints = get_complaint_service().store.find(created_after=since)
        return {
            "message": "Complaint statistics retrieved successfully",
            "timeframe": timeframe,
            "stats": authority_view.dashboard_stats(complaints, timeframe),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("fetching complaint statistics", e)


@router.get("/complaints/nearby")
async def nearby_complaints(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: int = Query(settings.NEARBY_DEFAULT_RADIUS_METERS, gt=0),
    officer: CurrentUser = Depends(require_authority)
):
    """Map view: complaints within radius meters of (lat, lng), nearest first."""
    try:
        if lat is None or lng is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Latitude and longitude are required"
            )

        nearby = get_complaint_service().store.find_nearby(lat, lng, radius)
        users = get_user_service().get_users(c.user_id for c, _ in nearby)

        return {
            "message": "Nearby complaints retrieved successfully",
            "complaints": [authority_view.to_map_marker(c, distance, users) for c, distance in nearby],
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("fetching nearby complaints", e)


@router.get("/complaints/{complaint_id}")
async def complaint_details(complaint_id: str, officer: CurrentUser = Depends(require_authority)):
    try:
        complaint = get_complaint_service().get(complaint_id)
        users = get_user_service().get_users([complaint.user_id])
        return {
            "message": "Complaint details retrieved successfully",
            "complaint": authority_view.to_alert_detail(complaint, users),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("fetching complaint details", e)


@router.patch("/complaints/{complaint_id}/acknowledge")
async def acknowledge_complaint(
    complaint_id: str,
    payload: Optional[AcknowledgeRequest] = None,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        payload = payload or AcknowledgeRequest()
        complaint = get_complaint_service().acknowledge(
            complaint_id,
            officer_id=officer.id,
            officer_name=payload.officer_name or officer.display_name,
            notes=payload.notes,
        )
        return {"message": "Complaint acknowledged successfully", "complaint": _summary(complaint)}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("acknowledging complaint", e)


@router.patch("/complaints/{complaint_id}/assign")
async def assign_complaint(
    complaint_id: str,
    payload: AssignRequest,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        complaint = get_complaint_service().assign_officer(
            complaint_id, payload.officer_id, assigned_by=officer.id
        )
        return {"message": "Officer assigned successfully", "complaint": _summary(complaint)}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("assigning officer", e)


@router.patch("/complaints/{complaint_id}/status")
async def change_complaint_status(
    complaint_id: str,
    payload: StatusChangeRequest,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        complaint = get_complaint_service().change_status(
            complaint_id, payload.status, officer_id=officer.id, notes=payload.notes
        )
        return {"message": "Complaint status updated successfully", "complaint": _summary(complaint)}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("updating complaint status", e)


@router.patch("/complaints/{complaint_id}/resolve")
async def resolve_complaint(
    complaint_id: str,
    payload: ResolveRequest,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        complaint = get_complaint_service().resolve(
            complaint_id,
            payload.resolution_notes,
            officer_id=officer.id,
            officer_name=payload.officer_name or officer.display_name,
            action_taken=payload.action_taken,
        )
        body = _summary(complaint)
        body["resolution"] = complaint.resolution.model_dump(by_alias=True, mode="json")
        return {"message": "Complaint resolved successfully", "complaint": body}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("resolving complaint", e)


@router.patch("/complaints/{complaint_id}/escalate")
async def escalate_complaint(
    complaint_id: str,
    payload: Optional[EscalateRequest] = None,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        payload = payload or EscalateRequest()
        complaint = get_complaint_service().escalate(
            complaint_id,
            officer_name=payload.officer_name or officer.display_name,
            escalation_notes=payload.escalation_notes,
            fir_number=payload.fir_number,
            officer_id=officer.id,
        )
        body = _summary(complaint)
        body["escalation"] = complaint.escalation.model_dump(by_alias=True, mode="json")
        return {"message": "Complaint escalated to FIR successfully", "complaint": body}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("escalating complaint", e)


@router.post("/complaints/{complaint_id}/communication", status_code=status.HTTP_201_CREATED)
async def officer_message(
    complaint_id: str,
    payload: AuthorityCommunicationCreate,
    officer: CurrentUser = Depends(require_authority)
):
    try:
        entry = get_complaint_service().add_communication(
            complaint_id,
            "officer",
            payload.message,
            officer_id=officer.id,
            officer_name=payload.officer_name or officer.display_name,
        )
        return {
            "message": "Communication added successfully",
            "communication": entry.model_dump(by_alias=True, mode="json"),
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("adding communication", e)


@router.delete("/complaints/{complaint_id}")
async def delete_complaint(complaint_id: str, officer: CurrentUser = Depends(require_authority)):
    try:
        get_complaint_service().soft_delete(complaint_id, officer_id=officer.id)
        return {"message": "Complaint deleted successfully"}
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("deleting complaint", e)


@router.get("/tourists/{user_id}/safety")
async def tourist_safety(user_id: str, officer: CurrentUser = Depends(require_authority)):
    """Safety score and risk level for one tourist, computed on request."""
    try:
        user = get_user_service().get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tourist not found")

        safety = get_complaint_service().safety_info(user_id)
        return {
            "message": "Tourist safety information retrieved successfully",
            "tourist": {
                "id": user_id,
                "username": user.get("username"),
                "email": user.get("email"),
                "phone": user.get("phone"),
                **safety,
            },
        }
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        raise _server_error("fetching tourist safety information", e)
