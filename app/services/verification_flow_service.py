"""
app/services/verification_flow_service.py

Purpose: Homepage SMS-gated lead capture

- start: validate the phone and open a verification session
- send_sms: send a code (Twilio Verify, or the local code store in dev mode)
- verify_sms: check the code, then write the lead and link it to the session
- verify_phone: standalone verification that opens an already-verified session
"""

from typing import Optional, Dict, Any

from app.core.exceptions import BadRequestError, ExternalServiceError
from app.core.logging import get_logger, LogContext
from app.flow.states import VerificationState
from app.services import auth_session_service, lead_service
from app.services.estimation_service import calculate_estimation
from app.services.sms_verification_service import sms_verification_service
from app.services.twilio_service import twilio_service
from utils.constants import (
    INVALID_PHONE_MESSAGE,
    SESSION_CREATED_MESSAGE,
    SMS_SENT_MESSAGE,
    SMS_SEND_FAILED_MESSAGE,
    INVALID_CODE_FORMAT_MESSAGE,
    VERIFICATION_NOT_STARTED_MESSAGE,
    VERIFY_MAX_ATTEMPTS_MESSAGE,
    VERIFY_REJECTED_MESSAGE,
    VERIFICATION_SUCCESS_MESSAGE,
    LEAD_TYPE_SMS_VERIFIED,
    DEFAULT_LAST_NAME,
    DEFAULT_POSTAL_CODE,
    CONSENT_SOURCE_HOMEPAGE,
)
from utils.time_utils import utcnow
from utils.validation_utils import (
    format_phone_number,
    normalize_code,
    is_valid_verification_code,
    mask_phone_number,
)

logger = get_logger(__name__)

LOCAL_SID_PREFIX = "local-"

PROPERTY_FIELDS = (
    "property_type", "address", "city", "postal_code", "surface", "rooms",
    "bedrooms", "bathrooms", "has_garden", "has_parking", "has_balcony",
    "construction_year",
)


def _use_twilio_verify() -> bool:
    return twilio_service.is_verify_configured() and not sms_verification_service.dev_mode


async def start(
    phone_number: str,
    property_data: Optional[Dict[str, Any]] = None,
    email: Optional[str] = None,
    first_name: Optional[str] = None
) -> Dict[str, Any]:
    """
    Opens a verification session for a homepage estimation form.

    Raises:
        BadRequestError: If the phone number is invalid
    """
    formatted = format_phone_number(phone_number)
    if not formatted:
        raise BadRequestError(INVALID_PHONE_MESSAGE, code="INVALID_PHONE")

    session = await auth_session_service.create_session(
        phone_number=formatted,
        email=email,
        first_name=first_name,
        property_data=property_data
    )

    return {"success": True, "session_id": session["id"], "message": SESSION_CREATED_MESSAGE}


async def send_sms(session_id: str) -> Dict[str, Any]:
    """
    Sends the verification code for a session.

    Raises:
        SessionExpiredError: Unknown or expired session
        BadRequestError: Invalid phone or code refused by the local store
        ExternalServiceError: SMS provider failure
    """
    session = await auth_session_service.get_active_session(session_id)
    phone = session["phone_number"]

    with LogContext(session_id=session_id, phone=mask_phone_number(phone)):
        if _use_twilio_verify():
            result = await twilio_service.start_verification(phone, channel="sms")
            if not result["success"]:
                logger.error(f"❌ Twilio Verify send failed: {result.get('error')}")
                if result.get("error_code") == "invalid_phone":
                    raise BadRequestError(INVALID_PHONE_MESSAGE, code="INVALID_PHONE")
                raise ExternalServiceError(SMS_SEND_FAILED_MESSAGE)
            verification_sid = result["sid"]

        elif (session.get("verification_sid") or "").startswith(LOCAL_SID_PREFIX) \
                and sms_verification_service.has_pending_code(phone):
            # Resend while the local code is still valid: keep the pending code
            verification_sid = session["verification_sid"]
            logger.info("Local code still pending, not sending a new one")

        else:
            result = await sms_verification_service.send_verification_code(phone)
            if not result["success"]:
                if result.get("error_code") in ("invalid_phone", "code_pending"):
                    raise BadRequestError(result["error"], code=result["error_code"].upper())
                raise ExternalServiceError(SMS_SEND_FAILED_MESSAGE)
            verification_sid = f"{LOCAL_SID_PREFIX}{result['message_id']}"

        await auth_session_service.update_session_state(
            session_id,
            VerificationState.SMS_SENT,
            extra={"verification_sid": verification_sid}
        )

    return {
        "success": True,
        "message": SMS_SENT_MESSAGE,
        "phone_display": mask_phone_number(phone)
    }


async def _check_code(session: Dict[str, Any], code: str):
    """
    Checks a code with the backend that sent it.

    Raises:
        BadRequestError: Code rejected
        ExternalServiceError: Provider failure
    """
    phone = session["phone_number"]

    if session["verification_sid"].startswith(LOCAL_SID_PREFIX):
        result = await sms_verification_service.verify_code(phone, code)
        if not result["success"]:
            raise BadRequestError(
                result["error"],
                code="INVALID_CODE",
                details={"attempts_remaining": result.get("attempts_remaining")}
            )
        return

    result = await twilio_service.check_verification(phone, code)
    if not result["success"]:
        error_code = result.get("error_code")
        if error_code == "max_attempts":
            raise BadRequestError(VERIFY_MAX_ATTEMPTS_MESSAGE, code="MAX_ATTEMPTS")
        if error_code in ("not_found", "invalid_parameter"):
            raise BadRequestError(VERIFY_REJECTED_MESSAGE, code="INVALID_CODE")
        raise ExternalServiceError(SMS_SEND_FAILED_MESSAGE)

    if not result["approved"]:
        raise BadRequestError(VERIFY_REJECTED_MESSAGE, code="INVALID_CODE")


def build_lead_data(session: Dict[str, Any], ip_address: Optional[str], source: Optional[str]) -> Dict[str, Any]:
    property_data = session.get("property_data") or {}
    lead_data = {field: property_data.get(field) for field in PROPERTY_FIELDS}

    lead_data.update({
        "email": session.get("email") or property_data.get("email"),
        "phone": session["phone_number"],
        "first_name": session.get("first_name") or property_data.get("first_name"),
        "last_name": property_data.get("last_name") or DEFAULT_LAST_NAME,
        "address": property_data.get("address") or property_data.get("city"),
        "postal_code": property_data.get("postal_code") or DEFAULT_POSTAL_CODE,
        "source": source,
        "lead_type": LEAD_TYPE_SMS_VERIFIED,
        "consent_at": utcnow(),
        "consent_source": CONSENT_SOURCE_HOMEPAGE,
        "ip_address": ip_address,
    })

    if property_data.get("surface") and property_data.get("city"):
        lead_data["estimated_value"] = calculate_estimation(property_data)["estimated_value"]

    return lead_data


async def verify_sms(
    session_id: str,
    code: str,
    ip_address: Optional[str] = None,
    source: Optional[str] = None
) -> Dict[str, Any]:
    """
    Checks the code and writes the lead.

    Returns:
        {"success": True, "message": "Vérification réussie", "lead_id": str}
    """
    code = normalize_code(code)
    if not is_valid_verification_code(code):
        raise BadRequestError(INVALID_CODE_FORMAT_MESSAGE, code="INVALID_CODE")

    session = await auth_session_service.get_active_session(session_id)

    with LogContext(session_id=session_id, phone=mask_phone_number(session["phone_number"])):
        if session.get("state") == VerificationState.LEAD_CREATED.value and session.get("lead_id"):
            logger.info("Session already verified, returning existing lead")
            return {"success": True, "message": VERIFICATION_SUCCESS_MESSAGE, "lead_id": session["lead_id"]}

        if not session.get("verification_sid"):
            raise BadRequestError(VERIFICATION_NOT_STARTED_MESSAGE, code="VERIFICATION_NOT_STARTED")

        if session.get("state") != VerificationState.SMS_VERIFIED.value:
            await _check_code(session, code)
            await auth_session_service.update_session_state(
                session_id,
                VerificationState.SMS_VERIFIED,
                extra={"is_sms_verified": True}
            )

        lead = await lead_service.create_lead(build_lead_data(session, ip_address, source))

        await auth_session_service.update_session_state(
            session_id,
            VerificationState.LEAD_CREATED,
            extra={"lead_id": lead["id"]}
        )
        if session["verification_sid"].startswith(LOCAL_SID_PREFIX):
            sms_verification_service.clear_verification(session["phone_number"])
        logger.info(f"🎉 Homepage lead created: {lead['id']}")

    return {"success": True, "message": VERIFICATION_SUCCESS_MESSAGE, "lead_id": lead["id"]}


async def get_status(session_id: str) -> Dict[str, Any]:
    session = await auth_session_service.get_active_session(session_id)
    return {
        "session_id": session["id"],
        "state": session["state"],
        "is_sms_verified": session.get("is_sms_verified", False),
        "phone_display": mask_phone_number(session["phone_number"]),
        "expires_at": session["expires_at"],
        "lead_id": session.get("lead_id")
    }


async def verify_phone(phone_number: str, code: str) -> Dict[str, Any]:
    """
    Standalone code check (/api/sms/verify-code). On success opens a session
    already marked as SMS-verified.

    Raises:
        BadRequestError: Invalid phone or rejected code
    """
    formatted = format_phone_number(phone_number)
    if not formatted:
        raise BadRequestError(INVALID_PHONE_MESSAGE, code="INVALID_PHONE")

    result = await sms_verification_service.verify_code(formatted, code)
    if not result["success"]:
        raise BadRequestError(
            result["error"],
            code="INVALID_CODE",
            details={"attempts_remaining": result.get("attempts_remaining")}
        )

    session = await auth_session_service.create_session(phone_number=formatted, is_sms_verified=True)

    return {
        "success": True,
        "message": result["message"],
        "session_id": session["id"],
        "phone_number": formatted
    }
