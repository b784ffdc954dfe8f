from datetime import timedelta

import pytest

from app.core.errors import (
    AlreadyRated,
    ConcurrentModification,
    ForbiddenError,
    InvalidInputError,
    InvalidTransition,
    MissingContactInfo,
    MissingResolutionNotes,
    NotCancellable,
    NotEligibleForFeedback,
    NotFoundError,
)
from app.models.complaint import EmergencyCreate
from app.models.user import CurrentUser
from conftest import OTHER_TOURIST, TOURIST, make_payload


def notifications_for(db, user_id):
    return [doc.to_dict() for doc in db.collection("notifications").where("user_id", "==", user_id).stream()]


def walk_to(service, complaint_id, status):
    """Drive a complaint along the happy path up to status."""
    path = ["under_review", "assigned", "in_progress", "resolved"]
    for step in path[:path.index(status) + 1]:
        if step == "under_review":
            service.acknowledge(complaint_id, officer_name="Inspector Rao")
        elif step == "assigned":
            service.assign_officer(complaint_id, "officer-1")
        elif step == "in_progress":
            service.change_status(complaint_id, "in_progress")
        elif step == "resolved":
            service.resolve(complaint_id, "Wallet recovered")


class TestSubmit:

    def test_submit_derives_priority_and_department(self, service):
        complaint = service.submit(TOURIST, make_payload(category="fire_emergency", urgency="high"))

        stored = service.get(complaint.id)
        assert stored.priority == "high"
        assert stored.assigned_department == "fire_department"
        assert stored.status == "submitted"
        assert stored.sos_activated_at is None
        assert [c.message for c in stored.communications] == ["Complaint submitted"]
        assert stored.complaint_id.startswith("SOS")
        assert stored.complaint_id.endswith(complaint.id[-6:].upper())

    def test_sos_submission_is_always_critical(self, service, db):
        complaint = service.submit(TOURIST, make_payload(urgency="low", isEmergencySOS=True))

        assert complaint.priority == "critical"
        assert complaint.sos_activated_at is not None
        titles = {n["title"] for n in notifications_for(db, TOURIST.id)}
        assert titles == {"Help Request Submitted", "Emergency SOS Activated"}

    def test_submit_notification_text(self, service, db):
        service.submit(TOURIST, make_payload(category="medical_help", urgency="critical"))

        [notification] = notifications_for(db, TOURIST.id)
        assert notification["message"] == "Your medical help request has been submitted successfully."
        assert notification["priority"] == "critical"
        assert notification["type"] == "emergency"

    def test_notification_failure_does_not_fail_submission(self, service, monkeypatch):
        def broken_create(data):
            raise RuntimeError("notification store down")

        monkeypatch.setattr(service.notifier, "create", broken_create)

        complaint = service.submit(TOURIST, make_payload())
        assert service.get(complaint.id).status == "submitted"


class TestEmergency:

    def test_emergency_defaults(self, service, db):
        complaint, eta = service.submit_emergency(TOURIST)

        assert eta == "5-8 minutes"
        assert complaint.urgency == "critical"
        assert complaint.is_emergency_sos is True
        assert complaint.priority == "critical"
        assert complaint.category == "general_help"
        assert complaint.title == "Emergency SOS Alert"
        assert complaint.contact_info == "+1-555-0100"
        assert complaint.description == "Emergency SOS activated - immediate assistance required"
        assert complaint.location.address == "Location detected via GPS"
        assert complaint.metadata.submission_source == "emergency_sos"

        [notification] = notifications_for(db, TOURIST.id)
        assert notification["title"] == "EMERGENCY SOS ACTIVATED"
        assert notification["related_type"] == "emergency_sos"

    def test_emergency_falls_back_to_email(self, service):
        complaint, _ = service.submit_emergency(OTHER_TOURIST)
        assert complaint.contact_info == "ben@example.com"

    def test_emergency_with_location(self, service):
        payload = EmergencyCreate(location={"coordinates": [77.5946, 12.9716], "landmark": "Bus stand"})
        complaint, _ = service.submit_emergency(TOURIST, payload)
        assert complaint.location.coordinates == [77.5946, 12.9716]
        assert complaint.location.address == "Location detected via GPS"

    def test_emergency_without_contact_info(self, service, db):
        anonymous = CurrentUser(id="tourist-3")
        with pytest.raises(MissingContactInfo):
            service.submit_emergency(anonymous)
        assert list(db.collection("sos_complaints").stream()) == []


class TestCommunication:

    def test_owner_can_add_message(self, service):
        complaint = service.submit(TOURIST, make_payload())
        entry = service.add_communication(complaint.id, "user", "Any update?", user_id=TOURIST.id)

        assert entry.sender == "user"
        assert service.get(complaint.id).communications[-1].message == "Any update?"

    def test_non_owner_is_forbidden(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(ForbiddenError):
            service.add_communication(complaint.id, "user", "Hello", user_id=OTHER_TOURIST.id)
        assert len(service.get(complaint.id).communications) == 1

    def test_officer_message_notifies_owner_with_preview(self, service, db):
        complaint = service.submit(TOURIST, make_payload())
        message = "We have located CCTV footage near the steps and are reviewing it now."

        service.add_communication(complaint.id, "officer", message, officer_id="officer-1", officer_name="Rao")

        notification = next(n for n in notifications_for(db, TOURIST.id) if n["title"] == "Message from Authority")
        assert f'"{message[:50]}..."' in notification["message"]
        assert notification["metadata"]["officerName"] == "Rao"

    def test_unknown_complaint(self, service):
        with pytest.raises(NotFoundError):
            service.add_communication("missing", "user", "Hello", user_id=TOURIST.id)


class TestTransitions:

    def test_acknowledge(self, service, db):
        complaint = service.submit(TOURIST, make_payload())
        updated = service.acknowledge(complaint.id, officer_name="Inspector Rao", notes="On it")

        assert updated.status == "under_review"
        assert updated.communications[-1].message == \
            "Status changed from submitted to under_review: Acknowledged by Inspector Rao: On it"
        assert updated.emergency_response_time is None
        assert "Complaint Acknowledged" in {n["title"] for n in notifications_for(db, TOURIST.id)}

    def test_acknowledge_records_sos_response_time(self, service):
        complaint, _ = service.submit_emergency(TOURIST)
        updated = service.acknowledge(complaint.id)

        assert updated.emergency_response_time is not None
        assert updated.emergency_response_time >= 0

    def test_acknowledge_twice_is_invalid(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.acknowledge(complaint.id)
        with pytest.raises(InvalidTransition):
            service.acknowledge(complaint.id)

    def test_assign_officer(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.acknowledge(complaint.id)
        updated = service.assign_officer(complaint.id, "officer-7", assigned_by="officer-1")

        assert updated.status == "assigned"
        assert updated.assigned_to == "officer-7"
        assert updated.communications[-1].message == "Complaint assigned to officer"

    def test_change_status_rejects_targets_with_dedicated_operations(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(InvalidInputError):
            service.change_status(complaint.id, "resolved")

    def test_authority_cannot_close_submitted_complaint(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(InvalidTransition):
            service.change_status(complaint.id, "closed", officer_id="officer-1")
        with pytest.raises(InvalidTransition):
            service.update_status(complaint.id, "closed")

        stored = service.get(complaint.id)
        assert stored.status == "submitted"
        assert len(stored.communications) == 1

    def test_authority_closes_resolved_complaint(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.escalate(complaint.id)
        service.resolve(complaint.id, "Handled")

        closed = service.change_status(complaint.id, "closed", officer_id="officer-1")

        assert closed.status == "closed"
        assert closed.communications[-1].message == "Status changed from resolved to closed"

    def test_illegal_edge_leaves_complaint_untouched(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(InvalidTransition):
            service.update_status(complaint.id, "in_progress")

        stored = service.get(complaint.id)
        assert stored.status == "submitted"
        assert stored.version == 0

    def test_every_write_bumps_version(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.acknowledge(complaint.id)
        service.assign_officer(complaint.id, "officer-1")
        assert service.get(complaint.id).version == 2


class TestResolve:

    def test_resolve(self, service, db):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, "in_progress")

        updated = service.resolve(complaint.id, "Wallet recovered", officer_id="officer-1")

        assert updated.status == "resolved"
        assert updated.resolution.resolution_notes == "Wallet recovered"
        assert updated.resolution.action_taken == "Issue resolved by authority"
        notification = next(n for n in notifications_for(db, TOURIST.id) if n["title"] == "Complaint Resolved")
        assert notification["action_required"] is True
        assert notification["action_url"] == f"/sos/{complaint.id}/feedback"
        assert notification["action_text"] == "Provide Feedback"

    @pytest.mark.parametrize("notes", [None, "", "   "])
    def test_resolve_without_notes_changes_nothing(self, service, notes):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, "in_progress")
        before = service.get(complaint.id)

        with pytest.raises(MissingResolutionNotes):
            service.resolve(complaint.id, notes)

        after = service.get(complaint.id)
        assert after.status == "in_progress"
        assert len(after.communications) == len(before.communications)
        assert after.version == before.version


class TestEscalate:

    def test_escalate_keeps_priority_and_department(self, service, db):
        complaint = service.submit(TOURIST, make_payload(category="harassment", urgency="low"))

        updated = service.escalate(complaint.id, officer_name="Inspector Rao", escalation_notes="Repeat offender")

        assert updated.status == "escalated"
        assert updated.priority == "low"
        assert updated.assigned_department == "police"
        assert updated.escalation.escalated_to_fir is True
        assert updated.escalation.fir_number.startswith("FIR")
        assert updated.communications[-1].message == \
            f"Complaint escalated to FIR ({updated.escalation.fir_number}) by Inspector Rao: Repeat offender"

        notification = next(n for n in notifications_for(db, TOURIST.id) if n["title"] == "Complaint Escalated to FIR")
        assert notification["priority"] == "high"
        assert notification["related_type"] == "fir_case"

    def test_escalate_with_given_fir_number(self, service):
        complaint = service.submit(TOURIST, make_payload())
        updated = service.escalate(complaint.id, fir_number="FIR-2024-0042")
        assert updated.escalation.fir_number == "FIR-2024-0042"
        assert "by Authority" in updated.communications[-1].message

    def test_escalated_complaint_can_be_resolved(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.escalate(complaint.id)
        assert service.resolve(complaint.id, "Case closed by FIR team").status == "resolved"


class TestCancel:

    def test_owner_cancels_submitted(self, service):
        complaint = service.submit(TOURIST, make_payload())
        updated = service.cancel(complaint.id, TOURIST.id, "Found my wallet")

        assert updated.status == "closed"
        assert updated.communications[-1].message == \
            "Status changed from submitted to closed: Cancelled by user: Found my wallet"

    def test_cancel_without_reason(self, service):
        complaint = service.submit(TOURIST, make_payload())
        updated = service.cancel(complaint.id, TOURIST.id)
        assert updated.communications[-1].message.endswith("Cancelled by user: No reason provided")

    def test_non_owner_cannot_cancel(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(ForbiddenError):
            service.cancel(complaint.id, OTHER_TOURIST.id)

    @pytest.mark.parametrize("status", ["under_review", "assigned", "in_progress", "resolved"])
    def test_cancel_after_submitted_is_conflict(self, service, status):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, status)
        with pytest.raises(NotCancellable):
            service.cancel(complaint.id, TOURIST.id)


class TestFeedback:

    def test_feedback_once(self, service):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, "resolved")

        feedback = service.submit_feedback(complaint.id, TOURIST.id, 5, "Very quick")
        assert feedback.rating == 5

        with pytest.raises(AlreadyRated):
            service.submit_feedback(complaint.id, TOURIST.id, 1)

        stored = service.get(complaint.id)
        assert stored.feedback.rating == 5
        assert stored.communications[-1].message == "Feedback submitted: 5/5"

    def test_feedback_before_resolution(self, service):
        complaint = service.submit(TOURIST, make_payload())
        with pytest.raises(NotEligibleForFeedback):
            service.submit_feedback(complaint.id, TOURIST.id, 4)

    def test_feedback_from_non_owner(self, service):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, "resolved")
        with pytest.raises(ForbiddenError):
            service.submit_feedback(complaint.id, OTHER_TOURIST.id, 4)

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, service, rating):
        complaint = service.submit(TOURIST, make_payload())
        walk_to(service, complaint.id, "resolved")
        with pytest.raises(InvalidInputError):
            service.submit_feedback(complaint.id, TOURIST.id, rating)


class TestConcurrency:

    def test_stale_write_is_rejected(self, service):
        complaint = service.submit(TOURIST, make_payload())
        stale, stale_update_time = service.store.get(complaint.id)

        service.acknowledge(complaint.id)

        stale.status = "closed"
        with pytest.raises(ConcurrentModification):
            service.store.save(stale, stale_update_time)

        assert service.get(complaint.id).status == "under_review"


class TestReadSide:

    def test_soft_delete_hides_complaint(self, service):
        complaint = service.submit(TOURIST, make_payload())
        service.soft_delete(complaint.id)

        with pytest.raises(NotFoundError):
            service.get(complaint.id)
        assert service.store.find(user_id=TOURIST.id) == []
        deleted, _ = service.store.get(complaint.id, include_deleted=True)
        assert deleted.deleted_at is not None

    def test_get_for_user_checks_owner(self, service):
        complaint = service.submit(TOURIST, make_payload())
        assert service.get_for_user(complaint.id, TOURIST.id).id == complaint.id
        with pytest.raises(ForbiddenError):
            service.get_for_user(complaint.id, OTHER_TOURIST.id)

    def test_list_for_user(self, service):
        for i in range(3):
            service.submit(TOURIST, make_payload(title=f"Request {i}"))
        service.submit(OTHER_TOURIST, make_payload(title="Not mine"))

        items, pagination = service.list_for_user(TOURIST.id, page=1, limit=2)

        assert pagination == {"total": 3, "page": 1, "limit": 2, "totalPages": 2, "hasNext": True, "hasPrev": False}
        assert [item["title"] for item in items] == ["Request 2", "Request 1"]
        assert "communications" not in items[0]
        assert "metadata" not in items[0]

    def test_list_for_user_date_range(self, service):
        complaint = service.submit(TOURIST, make_payload())
        later = complaint.created_at + timedelta(days=1)

        items, _ = service.list_for_user(TOURIST.id, start_date=later)
        assert items == []
        items, _ = service.list_for_user(TOURIST.id, end_date=later)
        assert len(items) == 1

    def test_user_stats(self, service):
        first = service.submit(TOURIST, make_payload(urgency="high"))
        service.submit_emergency(TOURIST)
        walk_to(service, first.id, "resolved")
        service.submit_feedback(first.id, TOURIST.id, 4)

        stats = service.user_stats(TOURIST.id)

        assert stats["total"] == 2
        assert stats["resolved"] == 1
        assert stats["emergency"] == 1
        assert stats["byStatus"] == {"resolved": 1, "submitted": 1}
        assert stats["byUrgency"] == {"high": 1, "critical": 1}
        assert stats["averageRating"] == 4

    def test_safety_info(self, service):
        service.submit_emergency(TOURIST)

        info = service.safety_info(TOURIST.id)

        assert info["safetyScore"] == 55
        assert info["riskLevel"] == "medium"
        assert info["activeComplaints"] == 1
        assert info["lastActivity"] is not None
