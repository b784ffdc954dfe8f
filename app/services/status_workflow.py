"""
Status Workflow Engine - strict state machine for SOS complaints.

DESIGN PRINCIPLES:
- Every status write goes through validate_transition
- No backward transitions, no same-state writes
- closed and rejected are terminal
- Authorities may escalate or reject any non-terminal complaint
"""

from typing import Dict, List

from app.core.errors import InvalidTransition
from app.models.complaint import ComplaintStatus

S = ComplaintStatus


class ComplaintWorkflow:
    """
    State machine for complaint status transitions.

    submitted → under_review → assigned → in_progress → resolved → closed
    submitted → closed          (user cancel, only from submitted)
    non-terminal → escalated    (authority)
    non-terminal → rejected     (authority)
    """

    TERMINAL_STATES = frozenset({S.CLOSED, S.REJECTED})

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ComplaintStatus, List[ComplaintStatus]] = {
        S.SUBMITTED: [S.UNDER_REVIEW, S.CLOSED, S.ESCALATED, S.REJECTED],
        S.UNDER_REVIEW: [S.ASSIGNED, S.ESCALATED, S.REJECTED],
        S.ASSIGNED: [S.IN_PROGRESS, S.ESCALATED, S.REJECTED],
        S.IN_PROGRESS: [S.RESOLVED, S.ESCALATED, S.REJECTED],
        S.RESOLVED: [S.CLOSED, S.ESCALATED, S.REJECTED],
        S.ESCALATED: [S.IN_PROGRESS, S.RESOLVED, S.REJECTED],
        S.CLOSED: [],  # Terminal
        S.REJECTED: [],  # Terminal
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        try:
            from_enum = ComplaintStatus(from_status)
            to_enum = ComplaintStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        """List of allowed next statuses from current status."""
        try:
            current_enum = ComplaintStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in {s.value for s in cls.TERMINAL_STATES}

    @classmethod
    def validate_transition(cls, current_status: str, new_status: str) -> None:
        """
        Raises:
            InvalidTransition: If the edge is not in the graph
        """
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise InvalidTransition(
                f"Invalid status transition: {current_status} → {new_status}. "
                f"Allowed transitions from {current_status}: {allowed}"
            )

    @staticmethod
    def status_change_message(old_status: str, new_status: str, notes: str = None) -> str:
        """System communication text recorded for every status change."""
        message = f"Status changed from {old_status} to {new_status}"
        if notes:
            message += f": {notes}"
        return message
