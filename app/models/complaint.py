"""
Pydantic models for SOS complaints.
These models validate submissions and describe the stored complaint record.
"""

from pydantic import Field, computed_field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum

from app.models.base import CamelModel
from app.utils.firestore_helpers import utc_now


class ComplaintCategory(str, Enum):
    MISSING_PERSON = "missing_person"
    FIRE_EMERGENCY = "fire_emergency"
    THEFT_ROBBERY = "theft_robbery"
    ACCIDENT = "accident"
    MEDICAL_HELP = "medical_help"
    GENERAL_HELP = "general_help"
    HARASSMENT = "harassment"
    FRAUD = "fraud"
    TRAFFIC_VIOLATION = "traffic_violation"
    NOISE_COMPLAINT = "noise_complaint"
    OTHER = "other"


class Urgency(str, Enum):
    """User-declared severity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    """System-derived operational priority. Never set by clients."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Department(str, Enum):
    POLICE = "police"
    FIRE_DEPARTMENT = "fire_department"
    MEDICAL_EMERGENCY = "medical_emergency"
    TRAFFIC_POLICE = "traffic_police"
    TOURIST_POLICE = "tourist_police"
    CYBER_CRIME = "cyber_crime"
    GENERAL = "general"


class ComplaintStatus(str, Enum):
    """
    Complaint lifecycle states.
    Legal edges live in app.services.status_workflow.
    """
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class CommunicationSource(str, Enum):
    USER = "user"
    OFFICER = "officer"
    SYSTEM = "system"


class AttachmentType(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"


class SubmissionSource(str, Enum):
    MOBILE_APP = "mobile_app"
    WEB_PORTAL = "web_portal"
    PHONE_CALL = "phone_call"
    WALK_IN = "walk_in"
    EMERGENCY_SOS = "emergency_sos"


def _check_coordinates(value: Optional[List[float]]) -> Optional[List[float]]:
    """Coordinates are stored as [longitude, latitude]."""
    if value is None:
        return None
    if len(value) != 2:
        raise ValueError("coordinates must be [longitude, latitude]")
    longitude, latitude = value
    if not -180 <= longitude <= 180:
        raise ValueError("longitude must be between -180 and 180")
    if not -90 <= latitude <= 90:
        raise ValueError("latitude must be between -90 and 90")
    return [float(longitude), float(latitude)]


class Location(CamelModel):
    address: str = Field(..., min_length=1, max_length=500)
    coordinates: Optional[List[float]] = Field(None, description="[longitude, latitude]")
    landmark: Optional[str] = Field(None, max_length=200)

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, value):
        return _check_coordinates(value)


class EmergencyLocation(CamelModel):
    """Location for the one-tap emergency path; every field may be missing."""
    address: Optional[str] = Field(None, max_length=500)
    coordinates: Optional[List[float]] = Field(None, description="[longitude, latitude]")
    landmark: Optional[str] = Field(None, max_length=200)

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, value):
        return _check_coordinates(value)


class Attachment(CamelModel):
    type: AttachmentType
    filename: Optional[str] = None
    original_name: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)
    uploaded_at: datetime = Field(default_factory=utc_now)


class Communication(CamelModel):
    """One entry of the append-only communication log."""
    sender: CommunicationSource = Field(..., alias="from")
    message: str = Field(..., min_length=1, max_length=1000)
    timestamp: datetime = Field(default_factory=utc_now)
    officer_id: Optional[str] = None


class Resolution(CamelModel):
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = Field(None, max_length=1000)
    action_taken: Optional[str] = Field(None, max_length=500)


class Feedback(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)
    submitted_at: Optional[datetime] = None


class EscalationInfo(CamelModel):
    """FIR escalation record. Escalation never touches priority or department."""
    escalated_to_fir: bool = True
    fir_number: str
    escalated_by: Optional[str] = None
    escalation_date: datetime = Field(default_factory=utc_now)
    escalation_notes: Optional[str] = Field(None, max_length=1000)


class DeviceInfo(CamelModel):
    user_agent: Optional[str] = None
    platform: Optional[str] = None
    app_version: Optional[str] = None


class SubmissionMetadata(CamelModel):
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    submission_source: SubmissionSource = SubmissionSource.MOBILE_APP
    ip_address: Optional[str] = None


class Complaint(CamelModel):
    """
    Stored complaint record (collection "sos_complaints").

    priority and assigned_department are derived by the policy engine and
    must never be written from client input.
    """
    id: str
    user_id: str
    category: ComplaintCategory
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=2000)
    urgency: Urgency = Urgency.MEDIUM
    contact_info: str
    alternate_contact: Optional[str] = None
    location: Location
    additional_info: Optional[str] = Field(None, max_length=1000)
    attachments: List[Attachment] = Field(default_factory=list)

    status: ComplaintStatus = ComplaintStatus.SUBMITTED
    assigned_to: Optional[str] = None
    assigned_department: Optional[Department] = None
    priority: Priority = Priority.NORMAL

    resolution: Resolution = Field(default_factory=Resolution)
    communications: List[Communication] = Field(default_factory=list)
    feedback: Feedback = Field(default_factory=Feedback)

    is_emergency_sos: bool = Field(False, alias="isEmergencySOS")
    sos_activated_at: Optional[datetime] = None
    emergency_response_time: Optional[float] = Field(None, description="Minutes from SOS activation to acknowledgement")

    escalation: Optional[EscalationInfo] = None
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    version: int = 0

    @computed_field(alias="complaintId")
    @property
    def complaint_id(self) -> str:
        from app.services.complaint_policy import complaint_reference
        return complaint_reference(self.created_at, self.id)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Complaint":
        return cls(id=doc_id, **data)

    def to_document(self) -> Dict[str, Any]:
        """Firestore representation; the id and derived complaintId are not stored."""
        return self.model_dump(exclude={"id", "complaint_id"})

    def to_api(self, include: Optional[set] = None, exclude: Optional[set] = None) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", include=include, exclude=exclude)

    def public_summary(self) -> Dict[str, Any]:
        """Projection returned by a regular submission."""
        return {
            "id": self.id,
            "complaintId": self.complaint_id,
            "category": self.category,
            "title": self.title,
            "urgency": self.urgency,
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
            "isEmergencySOS": self.is_emergency_sos,
        }


# Request models

class ComplaintCreate(CamelModel):
    """
    Body of POST /sos/submit.
    priority, assignedDepartment and status are not accepted from clients.
    """
    category: ComplaintCategory
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    urgency: Urgency = Urgency.MEDIUM
    contact_info: str = Field(..., min_length=1, max_length=200)
    alternate_contact: Optional[str] = Field(None, max_length=200)
    location: Location
    additional_info: Optional[str] = Field(None, max_length=1000)
    attachments: List[Attachment] = Field(default_factory=list)
    is_emergency_sos: bool = Field(False, alias="isEmergencySOS")

    class Config:
        json_schema_extra = {
            "example": {
                "category": "theft_robbery",
                "title": "Wallet stolen near the ghat",
                "description": "My wallet was taken from my bag near the main ghat steps.",
                "urgency": "high",
                "contactInfo": "+91-98765-43210",
                "location": {
                    "address": "Dashashwamedh Ghat, Varanasi",
                    "coordinates": [83.0104, 25.3066],
                    "landmark": "Main steps"
                },
                "isEmergencySOS": False
            }
        }


class EmergencyCreate(CamelModel):
    """Body of POST /sos/emergency. Every field is optional."""
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[EmergencyLocation] = None
    additional_info: Optional[str] = Field(None, max_length=1000)


class CommunicationCreate(CamelModel):
    message: str = Field(..., min_length=1, max_length=1000)


class AuthorityCommunicationCreate(CommunicationCreate):
    officer_name: Optional[str] = Field(None, max_length=100)


class FeedbackCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class CancelRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class AcknowledgeRequest(CamelModel):
    officer_name: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


class AssignRequest(CamelModel):
    officer_id: str = Field(..., min_length=1)


class StatusChangeRequest(CamelModel):
    status: ComplaintStatus
    notes: Optional[str] = Field(None, max_length=500)


class ResolveRequest(CamelModel):
    officer_name: Optional[str] = Field(None, max_length=100)
    # Checked by the lifecycle service so the error kind is MissingResolutionNotes
    resolution_notes: Optional[str] = Field(None, max_length=1000)
    action_taken: Optional[str] = Field(None, max_length=500)


class EscalateRequest(CamelModel):
    officer_name: Optional[str] = Field(None, max_length=100)
    escalation_notes: Optional[str] = Field(None, max_length=1000)
    fir_number: Optional[str] = Field(None, max_length=100)
