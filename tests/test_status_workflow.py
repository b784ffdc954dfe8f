import pytest

from app.core.errors import InvalidTransition
from app.models.complaint import ComplaintStatus
from app.services.status_workflow import ComplaintWorkflow


@pytest.mark.parametrize("current,new", [
    ("submitted", "under_review"),
    ("submitted", "closed"),
    ("under_review", "assigned"),
    ("assigned", "in_progress"),
    ("in_progress", "resolved"),
    ("resolved", "closed"),
    ("in_progress", "escalated"),
    ("escalated", "resolved"),
    ("escalated", "in_progress"),
    ("assigned", "rejected"),
])
def test_valid_transitions(current, new):
    assert ComplaintWorkflow.is_valid_transition(current, new)
    ComplaintWorkflow.validate_transition(current, new)


@pytest.mark.parametrize("current,new", [
    ("submitted", "resolved"),
    ("under_review", "submitted"),
    ("resolved", "in_progress"),
    ("in_progress", "assigned"),
    ("closed", "submitted"),
    ("rejected", "under_review"),
    ("submitted", "unknown"),
])
def test_invalid_transitions(current, new):
    assert not ComplaintWorkflow.is_valid_transition(current, new)
    with pytest.raises(InvalidTransition):
        ComplaintWorkflow.validate_transition(current, new)


def test_same_state_is_rejected():
    for status in ComplaintStatus:
        assert not ComplaintWorkflow.is_valid_transition(status.value, status.value)


def test_terminal_states_have_no_exits():
    for status in ("closed", "rejected"):
        assert ComplaintWorkflow.is_terminal(status)
        assert ComplaintWorkflow.get_allowed_transitions(status) == []
    assert not ComplaintWorkflow.is_terminal("resolved")


def test_every_non_terminal_state_can_escalate_or_reject():
    for status in ComplaintStatus:
        if ComplaintWorkflow.is_terminal(status.value):
            continue
        allowed = ComplaintWorkflow.get_allowed_transitions(status.value)
        assert "rejected" in allowed
        if status != ComplaintStatus.ESCALATED:
            assert "escalated" in allowed


def test_status_change_message():
    assert ComplaintWorkflow.status_change_message("submitted", "under_review") == \
        "Status changed from submitted to under_review"
    assert ComplaintWorkflow.status_change_message("submitted", "closed", "Cancelled by user: found it") == \
        "Status changed from submitted to closed: Cancelled by user: found it"
