"""
app/services/auth_session_service.py

Purpose: Verification session management

- Creates short-lived sessions for the homepage SMS gate
- Handles session expiry
- Enforces valid state transitions and keeps a state history
"""

import uuid
from datetime import timedelta
from typing import Optional, Dict, Any

from app.db.mongo import get_auth_sessions_collection
from app.flow.states import VerificationState, is_valid_transition
from app.core.config import settings
from app.core.exceptions import SessionExpiredError, ConflictError
from app.core.logging import get_logger, LogContext
from utils.time_utils import utcnow, is_expired
from utils.validation_utils import mask_phone_number

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


async def create_session(
    phone_number: str,
    email: Optional[str] = None,
    first_name: Optional[str] = None,
    property_data: Optional[Dict[str, Any]] = None,
    is_sms_verified: bool = False
) -> Dict[str, Any]:
    """
    Creates a verification session.

    Args:
        phone_number: Normalised phone number (E.164)
        email: Optional contact email from the form
        first_name: Optional first name from the form
        property_data: Property details captured before verification
        is_sms_verified: True when the phone was verified before the session existed

    Returns:
        Session document
    """
    now = utcnow()
    state = VerificationState.SMS_VERIFIED if is_sms_verified else VerificationState.STARTED

    session = {
        "id": str(uuid.uuid4()),
        "phone_number": phone_number,
        "email": email,
        "first_name": first_name,
        "property_data": property_data or {},
        "is_email_verified": False,
        "is_sms_verified": is_sms_verified,
        "verification_sid": None,
        "state": state.value,
        "state_history": [],
        "lead_id": None,
        "created_at": now,
        "expires_at": now + timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
    }

    sessions = get_auth_sessions_collection()
    await sessions.insert_one(dict(session))

    with LogContext(session_id=session["id"], phone=mask_phone_number(phone_number)):
        logger.info(f"Verification session created in state {state.value}")

    return session


async def get_session(session_id: str) -> Optional[Dict[str, Any]]:
    sessions = get_auth_sessions_collection()
    return await sessions.find_one({"id": session_id}, PROJECTION)


async def get_active_session(session_id: str) -> Dict[str, Any]:
    """
    Returns a non-expired session.

    Raises:
        SessionExpiredError: If the session is unknown or expired
    """
    session = await get_session(session_id)

    if not session:
        raise SessionExpiredError()

    if session.get("state") == VerificationState.EXPIRED.value:
        raise SessionExpiredError()

    if is_expired(session.get("expires_at")):
        current_state = VerificationState(session.get("state", VerificationState.STARTED.value))
        # Terminal states are kept as-is
        if is_valid_transition(current_state, VerificationState.EXPIRED):
            await update_session_state(session_id, VerificationState.EXPIRED)
        with LogContext(session_id=session_id):
            logger.info("Session expired")
        raise SessionExpiredError()

    return session


async def update_session_state(
    session_id: str,
    new_state: VerificationState,
    extra: Optional[Dict[str, Any]] = None,
    validate_transition: bool = True
) -> bool:
    """
    Updates the session state with validation.

    Args:
        session_id: Session ID
        new_state: Target state
        extra: Additional fields to set with the state change
        validate_transition: Whether to enforce state transition rules

    Returns:
        True if a document was modified

    Raises:
        SessionExpiredError: If the session does not exist
        ConflictError: If the transition is invalid
    """
    with LogContext(session_id=session_id):
        sessions = get_auth_sessions_collection()

        session = await sessions.find_one({"id": session_id}, PROJECTION)
        if not session:
            raise SessionExpiredError()

        current_state = VerificationState(session.get("state", VerificationState.STARTED.value))

        if validate_transition and not is_valid_transition(current_state, new_state):
            logger.warning(f"Invalid state transition attempted: {current_state.value} -> {new_state.value}")
            raise ConflictError(
                f"Transition invalide : {current_state.value} -> {new_state.value}",
                details={"state": current_state.value}
            )

        now = utcnow()
        updates = {"state": new_state.value, "updated_at": now}
        if extra:
            updates.update(extra)

        result = await sessions.update_one(
            {"id": session_id},
            {
                "$set": updates,
                "$push": {
                    "state_history": {
                        "from": current_state.value,
                        "to": new_state.value,
                        "timestamp": now
                    }
                }
            }
        )

        success = result.modified_count > 0
        if success:
            logger.info(f"State updated: {current_state.value} -> {new_state.value}")
        else:
            logger.warning("State update failed")

        return success


async def delete_session(session_id: str) -> bool:
    sessions = get_auth_sessions_collection()
    result = await sessions.delete_one({"id": session_id})
    return result.deleted_count > 0
