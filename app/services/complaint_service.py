"""
Complaint Lifecycle Service - SOS complaint state changes and their side effects.

DESIGN PRINCIPLES:
- Each operation is one compare-and-swap write on one complaint, followed by
  zero or more best-effort notifications to the owner
- Every status write is validated against ComplaintWorkflow
- Every state-changing operation appends exactly one system communication
- priority/assigned_department only ever come from the policy engine
- A failed notification never undoes or fails the complaint write
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from collections import Counter
import time
import logging

from app.config.firebase import get_db
from app.core.errors import (
    AlreadyRated,
    ForbiddenError,
    InvalidInputError,
    InvalidTransition,
    MissingContactInfo,
    MissingResolutionNotes,
    NotCancellable,
    NotEligibleForFeedback,
)
from app.core.settings import settings
from app.models.complaint import (
    Communication,
    CommunicationSource,
    Complaint,
    ComplaintCategory,
    ComplaintCreate,
    ComplaintStatus,
    EmergencyCreate,
    EmergencyLocation,
    EscalationInfo,
    Feedback,
    Location,
    Resolution,
    SubmissionMetadata,
    SubmissionSource,
    Urgency,
)
from app.models.user import CurrentUser
from app.services.complaint_policy import SETTLED_STATUSES, apply_policy, calculate_safety_score, risk_level
from app.services.complaint_store import ComplaintStore, new_complaint_id
from app.services.notification_service import NotificationService
from app.services.status_workflow import ComplaintWorkflow
from app.utils.firestore_helpers import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

S = ComplaintStatus

ACTIVE_STATUSES = frozenset({S.SUBMITTED.value, S.UNDER_REVIEW.value, S.ASSIGNED.value, S.IN_PROGRESS.value})

# Statuses an authority may set through the generic status endpoint.
# assigned, resolved and escalated carry extra data and have their own operations.
GENERIC_STATUS_TARGETS = frozenset({S.UNDER_REVIEW.value, S.IN_PROGRESS.value, S.REJECTED.value, S.CLOSED.value})


class ComplaintService:
    """
    Orchestrates the SOS complaint lifecycle.
    """

    EMERGENCY_TITLE = "Emergency SOS Alert"
    EMERGENCY_DESCRIPTION = "Emergency SOS activated - immediate assistance required"
    EMERGENCY_ADDRESS = "Location detected via GPS"
    DEFAULT_ACTION_TAKEN = "Issue resolved by authority"
    MESSAGE_PREVIEW_LENGTH = 50

    def __init__(self, db=None, store: Optional[ComplaintStore] = None, notifier: Optional[NotificationService] = None):
        self.db = db or get_db()
        self.store = store or ComplaintStore(self.db)
        self.notifier = notifier or NotificationService(self.db)
        self.workflow = ComplaintWorkflow()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        user: CurrentUser,
        payload: ComplaintCreate,
        metadata: Optional[SubmissionMetadata] = None
    ) -> Complaint:
        """
        Create a complaint in status submitted and notify the owner.

        An emergency SOS submission records sos_activated_at and sends a
        second, separate critical notification.
        """
        now = utc_now()
        complaint = Complaint(
            id=new_complaint_id(),
            user_id=user.id,
            metadata=metadata or SubmissionMetadata(),
            created_at=now,
            updated_at=now,
            sos_activated_at=now if payload.is_emergency_sos else None,
            **payload.model_dump(),
        )
        apply_policy(complaint)
        complaint.communications.append(self._system_entry("Complaint submitted"))

        self.store.create(complaint)
        logger.info(
            f"Complaint submitted: {complaint.complaint_id} by user {user.id} "
            f"(category={complaint.category}, priority={complaint.priority}, sos={complaint.is_emergency_sos})"
        )

        critical = complaint.urgency == Urgency.CRITICAL.value
        self._notify_owner(
            complaint,
            title="Help Request Submitted",
            message=f"Your {self._category_label(complaint)} request has been submitted successfully.",
            type="emergency" if critical else "info",
            category="safety",
            priority="critical" if critical else "medium",
            event="submitted",
        )

        if complaint.is_emergency_sos:
            self._notify_owner(
                complaint,
                title="Emergency SOS Activated",
                message="Your emergency SOS has been activated. Emergency services have been notified and help is on the way.",
                type="emergency",
                category="emergency",
                priority="critical",
                event="sos_activated",
            )

        return complaint

    def submit_emergency(
        self,
        user: CurrentUser,
        payload: Optional[EmergencyCreate] = None,
        metadata: Optional[SubmissionMetadata] = None
    ) -> Tuple[Complaint, str]:
        """
        One-tap emergency SOS: always general_help, critical, SOS.

        Returns:
            The stored complaint and the static response ETA string. The ETA
            is informational only and does not reflect real dispatch.

        Raises:
            MissingContactInfo: The user has neither phone nor email on file
        """
        payload = payload or EmergencyCreate()
        contact_info = user.phone or user.email
        if not contact_info:
            raise MissingContactInfo(
                "No phone number or email on file to use as emergency contact"
            )

        location = payload.location or EmergencyLocation()
        metadata = (metadata or SubmissionMetadata()).model_copy(
            update={"submission_source": SubmissionSource.EMERGENCY_SOS.value}
        )

        now = utc_now()
        complaint = Complaint(
            id=new_complaint_id(),
            user_id=user.id,
            category=ComplaintCategory.GENERAL_HELP.value,
            title=self.EMERGENCY_TITLE,
            description=payload.description or self.EMERGENCY_DESCRIPTION,
            urgency=Urgency.CRITICAL.value,
            contact_info=contact_info,
            location=Location(
                address=location.address or self.EMERGENCY_ADDRESS,
                coordinates=location.coordinates,
                landmark=location.landmark,
            ),
            additional_info=payload.additional_info,
            is_emergency_sos=True,
            sos_activated_at=now,
            metadata=metadata,
            created_at=now,
            updated_at=now,
        )
        apply_policy(complaint)
        complaint.communications.append(self._system_entry("Emergency SOS activated"))

        self.store.create(complaint)
        logger.warning(f"EMERGENCY SOS activated: {complaint.complaint_id} by user {user.id}")

        self._notify_owner(
            complaint,
            title="EMERGENCY SOS ACTIVATED",
            message="Emergency services have been contacted. Help is on the way. Stay calm and stay on the line.",
            type="emergency",
            category="emergency",
            priority="critical",
            related_type="emergency_sos",
            event="emergency_sos",
        )

        return complaint, settings.EMERGENCY_RESPONSE_ETA

    # ------------------------------------------------------------------
    # Communication log
    # ------------------------------------------------------------------

    def add_communication(
        self,
        complaint_id: str,
        actor: str,
        message: str,
        user_id: Optional[str] = None,
        officer_id: Optional[str] = None,
        officer_name: Optional[str] = None
    ) -> Communication:
        """
        Append a user, officer or system message.

        Raises:
            NotFoundError: Unknown complaint
            ForbiddenError: A user actor who does not own the complaint
        """
        actor = CommunicationSource(actor).value
        entry = Communication(sender=actor, message=message, officer_id=officer_id)

        def _append(complaint: Complaint) -> None:
            if actor == CommunicationSource.USER.value:
                self._require_owner(complaint, user_id)
            complaint.communications.append(entry)

        complaint = self.store.mutate(complaint_id, _append)
        logger.info(f"Communication from {actor} added to complaint {complaint_id}")

        if actor == CommunicationSource.OFFICER.value:
            self._notify_owner(
                complaint,
                title="Message from Authority",
                message=f'You have received a message regarding your help request: "{self._preview(message)}"',
                type="info",
                category="safety",
                priority="medium",
                event="officer_message",
                extra={"officerName": officer_name},
            )

        return entry

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def update_status(
        self,
        complaint_id: str,
        new_status: str,
        officer_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Complaint:
        """
        Validated status change with a "Status changed from X to Y" entry.

        Raises:
            NotFoundError: Unknown complaint
            InvalidTransition: Edge not in the workflow graph, or closing a
                complaint that is still submitted (only the owner's cancel
                does that)
        """
        def _change(complaint: Complaint) -> None:
            if complaint.status == S.SUBMITTED.value and new_status == S.CLOSED.value:
                raise InvalidTransition(
                    "Invalid status transition: submitted → closed. "
                    "A submitted complaint is closed only by its owner's cancellation"
                )
            self._transition(complaint, new_status, officer_id=officer_id, notes=notes)

        complaint = self.store.mutate(complaint_id, _change)
        logger.info(f"Complaint {complaint_id} status → {new_status}")
        return complaint

    def change_status(
        self,
        complaint_id: str,
        new_status: str,
        officer_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Complaint:
        """Authority-initiated status change with an owner notification."""
        if new_status not in GENERIC_STATUS_TARGETS:
            raise InvalidInputError(
                f"Status {new_status} cannot be set directly. "
                f"Use the assign, resolve or escalate operations."
            )
        complaint = self.update_status(complaint_id, new_status, officer_id=officer_id, notes=notes)
        self._notify_status_updated(complaint)
        return complaint

    def acknowledge(
        self,
        complaint_id: str,
        officer_id: Optional[str] = None,
        officer_name: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Complaint:
        """
        Authority acknowledgement: submitted → under_review.
        For emergency SOS complaints the first acknowledgement records the
        response time in minutes since activation.
        """
        acknowledged_by = officer_name or "Authority"
        note = f"Acknowledged by {acknowledged_by}"
        if notes:
            note += f": {notes}"

        def _acknowledge(complaint: Complaint) -> None:
            self._transition(complaint, S.UNDER_REVIEW.value, officer_id=officer_id, notes=note)
            if complaint.is_emergency_sos and complaint.emergency_response_time is None and complaint.sos_activated_at:
                elapsed = utc_now() - parse_timestamp(complaint.sos_activated_at)
                complaint.emergency_response_time = round(elapsed.total_seconds() / 60, 1)

        complaint = self.store.mutate(complaint_id, _acknowledge)
        logger.info(f"Complaint {complaint_id} acknowledged by {acknowledged_by}")

        self._notify_owner(
            complaint,
            title="Complaint Acknowledged",
            message="Your help request has been acknowledged by authorities and is being reviewed.",
            type="info",
            category="safety",
            priority="medium",
            event="acknowledged",
            extra={"acknowledgedBy": officer_name},
        )
        return complaint

    def assign_officer(self, complaint_id: str, officer_id: str, assigned_by: Optional[str] = None) -> Complaint:
        def _assign(complaint: Complaint) -> None:
            self.workflow.validate_transition(complaint.status, S.ASSIGNED.value)
            complaint.assigned_to = officer_id
            complaint.status = S.ASSIGNED.value
            complaint.communications.append(
                self._system_entry("Complaint assigned to officer", officer_id=assigned_by)
            )

        complaint = self.store.mutate(complaint_id, _assign)
        logger.info(f"Complaint {complaint_id} assigned to officer {officer_id}")
        self._notify_status_updated(complaint)
        return complaint

    def resolve(
        self,
        complaint_id: str,
        resolution_notes: Optional[str],
        officer_id: Optional[str] = None,
        officer_name: Optional[str] = None,
        action_taken: Optional[str] = None
    ) -> Complaint:
        """
        Raises:
            MissingResolutionNotes: Notes absent; nothing is read or written
            InvalidTransition: Complaint is not in_progress or escalated
        """
        if not resolution_notes or not resolution_notes.strip():
            raise MissingResolutionNotes("Resolution notes are required")

        def _resolve(complaint: Complaint) -> None:
            self.workflow.validate_transition(complaint.status, S.RESOLVED.value)
            complaint.status = S.RESOLVED.value
            complaint.resolution = Resolution(
                resolved_by=officer_id,
                resolved_at=utc_now(),
                resolution_notes=resolution_notes,
                action_taken=action_taken or self.DEFAULT_ACTION_TAKEN,
            )
            complaint.communications.append(
                self._system_entry(f"Complaint resolved: {resolution_notes}", officer_id=officer_id)
            )

        complaint = self.store.mutate(complaint_id, _resolve)
        logger.info(f"Complaint {complaint_id} resolved by {officer_name or officer_id or 'authority'}")

        self._notify_owner(
            complaint,
            title="Complaint Resolved",
            message="Your help request has been resolved. Please provide feedback on the resolution.",
            type="success",
            category="safety",
            priority="medium",
            action_required=True,
            action_url=f"/sos/{complaint.id}/feedback",
            action_text="Provide Feedback",
            event="resolved",
            extra={"resolvedBy": officer_name},
        )
        return complaint

    def escalate(
        self,
        complaint_id: str,
        officer_name: Optional[str] = None,
        escalation_notes: Optional[str] = None,
        fir_number: Optional[str] = None,
        officer_id: Optional[str] = None
    ) -> Complaint:
        """
        Escalate to a formal FIR case. priority and assigned_department are
        left exactly as they were.
        """
        fir_number = fir_number or f"FIR{int(time.time() * 1000)}"
        escalated_by = officer_name or "Authority"

        def _escalate(complaint: Complaint) -> None:
            self.workflow.validate_transition(complaint.status, S.ESCALATED.value)
            complaint.status = S.ESCALATED.value
            complaint.escalation = EscalationInfo(
                fir_number=fir_number,
                escalated_by=officer_name,
                escalation_date=utc_now(),
                escalation_notes=escalation_notes,
            )
            message = f"Complaint escalated to FIR ({fir_number}) by {escalated_by}"
            if escalation_notes:
                message += f": {escalation_notes}"
            complaint.communications.append(self._system_entry(message, officer_id=officer_id))

        complaint = self.store.mutate(complaint_id, _escalate)
        logger.info(f"Complaint {complaint_id} escalated to FIR {fir_number}")

        self._notify_owner(
            complaint,
            title="Complaint Escalated to FIR",
            message=f"Your complaint has been escalated to an official FIR case ({fir_number}) for further investigation.",
            type="info",
            category="safety",
            priority="high",
            related_type="fir_case",
            event="escalated",
            extra={"firNumber": fir_number, "escalatedBy": officer_name},
        )
        return complaint

    def cancel(self, complaint_id: str, user_id: str, reason: Optional[str] = None) -> Complaint:
        """
        Owner cancellation, only while the complaint is still submitted.

        Raises:
            ForbiddenError: Caller is not the owner
            NotCancellable: Complaint already left submitted
        """
        note = f"Cancelled by user: {reason or 'No reason provided'}"

        def _cancel(complaint: Complaint) -> None:
            self._require_owner(complaint, user_id)
            if complaint.status != S.SUBMITTED.value:
                raise NotCancellable(
                    f"Complaint cannot be cancelled once it is {complaint.status}"
                )
            self._transition(complaint, S.CLOSED.value, notes=note)

        complaint = self.store.mutate(complaint_id, _cancel)
        logger.info(f"Complaint {complaint_id} cancelled by owner")
        return complaint

    def submit_feedback(
        self,
        complaint_id: str,
        user_id: str,
        rating: int,
        comment: Optional[str] = None
    ) -> Feedback:
        """
        Write-once owner feedback on a resolved or closed complaint.

        Raises:
            ForbiddenError: Caller is not the owner
            NotEligibleForFeedback: Complaint is not resolved or closed
            AlreadyRated: Feedback was submitted before
        """
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputError("Rating must be an integer between 1 and 5")

        feedback = Feedback(rating=rating, comment=comment, submitted_at=utc_now())

        def _rate(complaint: Complaint) -> None:
            self._require_owner(complaint, user_id)
            if complaint.status not in SETTLED_STATUSES:
                raise NotEligibleForFeedback(
                    "Feedback can only be submitted for resolved or closed complaints"
                )
            if complaint.feedback.rating is not None:
                raise AlreadyRated("Feedback has already been submitted for this complaint")
            complaint.feedback = feedback
            complaint.communications.append(self._system_entry(f"Feedback submitted: {rating}/5"))

        self.store.mutate(complaint_id, _rate)
        logger.info(f"Feedback {rating}/5 recorded for complaint {complaint_id}")
        return feedback

    def soft_delete(self, complaint_id: str, officer_id: Optional[str] = None) -> Complaint:
        """Hide a complaint from every default query. There is no hard delete."""
        def _delete(complaint: Complaint) -> None:
            complaint.is_deleted = True
            complaint.deleted_at = utc_now()
            complaint.communications.append(self._system_entry("Complaint deleted", officer_id=officer_id))

        complaint = self.store.mutate(complaint_id, _delete)
        logger.info(f"Complaint soft-deleted: {complaint_id}")
        return complaint

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get(self, complaint_id: str) -> Complaint:
        complaint, _ = self.store.get(complaint_id)
        return complaint

    def get_for_user(self, complaint_id: str, user_id: str) -> Complaint:
        complaint = self.get(complaint_id)
        self._require_owner(complaint, user_id)
        return complaint

    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        category: Optional[str] = None,
        urgency: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Tuple[List[Dict], Dict]:
        """The caller's complaints, newest first, without communications and metadata."""
        complaints, pagination = self.store.find_page(
            page=page,
            limit=limit,
            user_id=user_id,
            status=status,
            category=category,
            urgency=urgency,
            start_date=start_date,
            end_date=end_date,
        )
        items = [c.to_api(exclude={"communications", "metadata"}) for c in complaints]
        return items, pagination

    def user_stats(self, user_id: str) -> Dict:
        complaints = self.store.find(user_id=user_id)
        ratings = [c.feedback.rating for c in complaints if c.feedback.rating is not None]

        return {
            "total": len(complaints),
            "resolved": sum(1 for c in complaints if c.status in SETTLED_STATUSES),
            "emergency": sum(1 for c in complaints if c.is_emergency_sos),
            "byStatus": dict(Counter(c.status for c in complaints)),
            "byCategory": dict(Counter(c.category for c in complaints)),
            "byUrgency": dict(Counter(c.urgency for c in complaints)),
            "averageRating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
        }

    def safety_info(self, user_id: str) -> Dict:
        """Safety summary for the tourist-management view. Nothing is stored."""
        complaints = self.store.find(user_id=user_id)
        complaints.sort(key=lambda c: parse_timestamp(c.created_at), reverse=True)
        score = calculate_safety_score(complaints)

        return {
            "safetyScore": score,
            "riskLevel": risk_level(score),
            "totalComplaints": len(complaints),
            "activeComplaints": sum(1 for c in complaints if c.status in ACTIVE_STATUSES),
            "lastActivity": complaints[0].created_at.isoformat() if complaints else None,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(
        self,
        complaint: Complaint,
        new_status: str,
        officer_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> None:
        old_status = complaint.status
        self.workflow.validate_transition(old_status, new_status)
        complaint.status = ComplaintStatus(new_status).value
        complaint.communications.append(
            self._system_entry(
                self.workflow.status_change_message(old_status, complaint.status, notes),
                officer_id=officer_id,
            )
        )

    @staticmethod
    def _system_entry(message: str, officer_id: Optional[str] = None) -> Communication:
        return Communication(sender=CommunicationSource.SYSTEM.value, message=message, officer_id=officer_id)

    @staticmethod
    def _require_owner(complaint: Complaint, user_id: Optional[str]) -> None:
        if not user_id or complaint.user_id != user_id:
            raise ForbiddenError("You do not have access to this complaint")

    @staticmethod
    def _category_label(complaint: Complaint) -> str:
        return complaint.category.replace("_", " ")

    def _preview(self, message: str) -> str:
        if len(message) > self.MESSAGE_PREVIEW_LENGTH:
            return message[:self.MESSAGE_PREVIEW_LENGTH] + "..."
        return message

    def _notify_status_updated(self, complaint: Complaint) -> None:
        self._notify_owner(
            complaint,
            title="Request Status Updated",
            message=f"Your help request status: {complaint.status.replace('_', ' ').upper()}",
            type="info",
            category="safety",
            priority="medium",
            event="status_updated",
        )

    def _notify_owner(
        self,
        complaint: Complaint,
        event: str,
        related_type: str = "sos_complaint",
        extra: Optional[Dict] = None,
        **fields
    ) -> None:
        metadata = {
            "complaintId": complaint.complaint_id,
            "category": complaint.category,
            "urgency": complaint.urgency,
            "eventType": event,
        }
        if extra:
            metadata.update({k: v for k, v in extra.items() if v is not None})

        self.notifier.notify(
            user_id=complaint.user_id,
            related_id=complaint.id,
            related_type=related_type,
            metadata=metadata,
            **fields,
        )


# Global service instance (singleton pattern)
_complaint_service = None


def get_complaint_service() -> ComplaintService:
    """
    Get or create ComplaintService singleton instance.

    Returns:
        ComplaintService: The global complaint service instance
    """
    global _complaint_service
    if _complaint_service is None:
        _complaint_service = ComplaintService()
    return _complaint_service
