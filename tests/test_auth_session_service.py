from datetime import timedelta

import pytest

from app.core.exceptions import ConflictError, SessionExpiredError
from app.flow.states import VerificationState
from app.db.mongo import get_auth_sessions_collection
from app.services import auth_session_service
from utils.time_utils import utcnow


@pytest.mark.asyncio
async def test_create_session_defaults(db):
    session = await auth_session_service.create_session("+33612345678", first_name="Camille")

    assert session["state"] == "STARTED"
    assert session["property_data"] == {}
    assert not session["is_sms_verified"]
    assert session["expires_at"] > session["created_at"]

    stored = await auth_session_service.get_session(session["id"])
    assert stored["first_name"] == "Camille"
    assert "_id" not in stored


@pytest.mark.asyncio
async def test_pre_verified_session_starts_verified(db):
    session = await auth_session_service.create_session("+33612345678", is_sms_verified=True)

    assert session["state"] == "SMS_VERIFIED"


@pytest.mark.asyncio
async def test_state_history_is_recorded(db):
    session = await auth_session_service.create_session("+33612345678")

    await auth_session_service.update_session_state(
        session["id"], VerificationState.SMS_SENT, extra={"verification_sid": "local-1"}
    )

    stored = await auth_session_service.get_session(session["id"])
    assert stored["state"] == "SMS_SENT"
    assert stored["verification_sid"] == "local-1"
    assert [(h["from"], h["to"]) for h in stored["state_history"]] == [("STARTED", "SMS_SENT")]


@pytest.mark.asyncio
async def test_invalid_transition_is_refused(db):
    session = await auth_session_service.create_session("+33612345678")

    with pytest.raises(ConflictError) as exc:
        await auth_session_service.update_session_state(session["id"], VerificationState.LEAD_CREATED)

    assert exc.value.details == {"state": "STARTED"}
    assert (await auth_session_service.get_session(session["id"]))["state"] == "STARTED"


@pytest.mark.asyncio
async def test_delete_session(db):
    session = await auth_session_service.create_session("+33612345678")

    assert await auth_session_service.delete_session(session["id"])
    assert not await auth_session_service.delete_session(session["id"])

    with pytest.raises(SessionExpiredError):
        await auth_session_service.get_active_session(session["id"])


async def expire(session_id):
    await get_auth_sessions_collection().update_one(
        {"id": session_id},
        {"$set": {"expires_at": utcnow() - timedelta(minutes=1)}}
    )


@pytest.mark.asyncio
async def test_expired_session_moves_to_expired(db):
    session = await auth_session_service.create_session("+33612345678")
    await expire(session["id"])

    with pytest.raises(SessionExpiredError):
        await auth_session_service.get_active_session(session["id"])

    stored = await auth_session_service.get_session(session["id"])
    assert stored["state"] == "EXPIRED"
    assert [(h["from"], h["to"]) for h in stored["state_history"]] == [("STARTED", "EXPIRED")]


@pytest.mark.asyncio
async def test_expired_completed_session_keeps_lead_created(db):
    session = await auth_session_service.create_session("+33612345678", is_sms_verified=True)
    await auth_session_service.update_session_state(
        session["id"], VerificationState.LEAD_CREATED, extra={"lead_id": "lead-1"}
    )
    await expire(session["id"])

    with pytest.raises(SessionExpiredError):
        await auth_session_service.get_active_session(session["id"])

    stored = await auth_session_service.get_session(session["id"])
    assert stored["state"] == "LEAD_CREATED"
    assert stored["lead_id"] == "lead-1"
    assert [h["to"] for h in stored["state_history"]] == ["LEAD_CREATED"]
