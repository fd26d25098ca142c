"""
app/flow/states.py

Purpose: Defines the verification and sequence lifecycles

- Enum for each step of the homepage SMS gate
  (STARTED, SMS_SENT, SMS_VERIFIED, LEAD_CREATED, EXPIRED)
- Enum for email sequence row statuses
- Single source of truth for allowed transitions
- Metadata for each verification state
"""

from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass


class VerificationState(str, Enum):
    """
    States of a homepage verification session.
    Each state represents a step between form submission and lead creation.
    """

    STARTED = "STARTED"
    SMS_SENT = "SMS_SENT"
    SMS_VERIFIED = "SMS_VERIFIED"
    LEAD_CREATED = "LEAD_CREATED"
    EXPIRED = "EXPIRED"


@dataclass
class StateMetadata:
    """
    Metadata associated with each verification state.
    """
    name: VerificationState
    display_name: str
    step_number: Optional[int] = None  # For progress tracking
    total_steps: int = 4
    is_terminal: bool = False
    description: str = ""


STATE_METADATA: Dict[VerificationState, StateMetadata] = {
    VerificationState.STARTED: StateMetadata(
        name=VerificationState.STARTED,
        display_name="Session créée",
        step_number=1,
        description="Phone number and property data captured"
    ),
    VerificationState.SMS_SENT: StateMetadata(
        name=VerificationState.SMS_SENT,
        display_name="Code envoyé",
        step_number=2,
        description="Verification code sent by SMS"
    ),
    VerificationState.SMS_VERIFIED: StateMetadata(
        name=VerificationState.SMS_VERIFIED,
        display_name="Téléphone vérifié",
        step_number=3,
        description="Code accepted, lead not yet written"
    ),
    VerificationState.LEAD_CREATED: StateMetadata(
        name=VerificationState.LEAD_CREATED,
        display_name="Lead créé",
        step_number=4,
        is_terminal=True,
        description="Lead row written and linked to the session"
    ),
    VerificationState.EXPIRED: StateMetadata(
        name=VerificationState.EXPIRED,
        display_name="Session expirée",
        is_terminal=True,
        description="Session timed out before completion"
    ),
}


# Valid state transitions - prevents clients from skipping steps
STATE_TRANSITIONS: Dict[VerificationState, List[VerificationState]] = {
    VerificationState.STARTED: [
        VerificationState.SMS_SENT,
        VerificationState.EXPIRED
    ],
    VerificationState.SMS_SENT: [
        VerificationState.SMS_SENT,  # Resend
        VerificationState.SMS_VERIFIED,
        VerificationState.EXPIRED
    ],
    VerificationState.SMS_VERIFIED: [
        VerificationState.LEAD_CREATED,
        VerificationState.EXPIRED
    ],
    VerificationState.LEAD_CREATED: [],
    VerificationState.EXPIRED: [],
}


def is_valid_transition(from_state: VerificationState, to_state: VerificationState) -> bool:
    """
    Checks if a verification state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = STATE_TRANSITIONS.get(from_state, [])
    return to_state in allowed_transitions


def get_state_metadata(state: VerificationState) -> StateMetadata:
    """
    Retrieves metadata for a given state.
    """
    return STATE_METADATA.get(state, StateMetadata(
        name=state,
        display_name=state.value,
        description="Unknown state"
    ))


class SequenceStatus(str, Enum):
    """Status of one scheduled sequence email."""

    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


SEQUENCE_TRANSITIONS: Dict[SequenceStatus, List[SequenceStatus]] = {
    SequenceStatus.SCHEDULED: [
        SequenceStatus.SENT,
        SequenceStatus.FAILED,
        SequenceStatus.CANCELLED
    ],
    SequenceStatus.FAILED: [
        SequenceStatus.SCHEDULED,  # Manual retry
        SequenceStatus.CANCELLED
    ],
    SequenceStatus.CANCELLED: [
        SequenceStatus.SCHEDULED  # Re-activation
    ],
    SequenceStatus.SENT: [],
}


def is_valid_sequence_transition(from_status: SequenceStatus, to_status: SequenceStatus) -> bool:
    """Same-status updates are accepted so admins can edit scheduled_for alone."""
    if from_status == to_status:
        return True
    return to_status in SEQUENCE_TRANSITIONS.get(from_status, [])
