"""
app/api/verification.py

SMS verification endpoints
==========================

Homepage flow (session based):
1. POST /api/homepage-verification/start       -> session_id
2. POST /api/homepage-verification/send-sms    -> code sent, masked phone
3. POST /api/homepage-verification/verify-sms  -> lead created

Standalone phone verification:
- POST /api/sms/send-verification
- POST /api/sms/verify-code
- GET  /api/sms/verification-status/{phone_number}
- GET  /api/sms/test-connection, /api/sms/debug (development only)
"""

from fastapi import APIRouter, Depends, Request

from app.api.deps import rate_limit, get_client_ip, get_request_source
from app.core.config import settings
from app.core.exceptions import BadRequestError, ExternalServiceError, ResourceNotFoundError
from app.core.logging import get_logger
from app.schemas.verification import (
    StartVerificationRequest,
    StartVerificationResponse,
    SendSmsRequest,
    SendSmsResponse,
    VerifySmsRequest,
    VerifySmsResponse,
    VerificationSessionStatus,
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
    VerificationStatusResponse,
    SmsConnectionResponse,
    SmsDebugResponse,
)
from app.services import verification_flow_service
from app.services.sms_verification_service import sms_verification_service
from utils.validation_utils import format_phone_number
from utils.constants import INVALID_PHONE_MESSAGE, SMS_SEND_FAILED_MESSAGE

logger = get_logger(__name__)

FIVE_MINUTES = 5 * 60

homepage_router = APIRouter(prefix="/api/homepage-verification", tags=["Homepage verification"])
sms_router = APIRouter(prefix="/api/sms", tags=["SMS verification"])


# ============================================================================
# HOMEPAGE FLOW
# ============================================================================

@homepage_router.post(
    "/start",
    response_model=StartVerificationResponse,
    dependencies=[Depends(rate_limit(3, FIVE_MINUTES))]
)
async def start_verification(request: StartVerificationRequest) -> StartVerificationResponse:
    """
    Validates the phone number and opens a 30-minute verification session
    holding the property data until the phone is verified.
    """
    result = await verification_flow_service.start(
        phone_number=request.phone_number,
        property_data=request.property_data.model_dump(),
        email=request.email,
        first_name=request.first_name
    )
    return StartVerificationResponse(**result)


@homepage_router.post(
    "/send-sms",
    response_model=SendSmsResponse,
    dependencies=[Depends(rate_limit(3, FIVE_MINUTES))]
)
async def send_sms(request: SendSmsRequest) -> SendSmsResponse:
    result = await verification_flow_service.send_sms(request.session_id)
    return SendSmsResponse(**result)


@homepage_router.post(
    "/verify-sms",
    response_model=VerifySmsResponse,
    dependencies=[Depends(rate_limit(10, FIVE_MINUTES))]
)
async def verify_sms(payload: VerifySmsRequest, request: Request) -> VerifySmsResponse:
    """
    Checks the code; on success the lead is written and its id returned.
    """
    result = await verification_flow_service.verify_sms(
        session_id=payload.session_id,
        code=payload.code,
        ip_address=get_client_ip(request),
        source=get_request_source(request)
    )
    return VerifySmsResponse(**result)


@homepage_router.get("/{session_id}", response_model=VerificationSessionStatus)
async def get_verification_session(session_id: str) -> VerificationSessionStatus:
    result = await verification_flow_service.get_status(session_id)
    return VerificationSessionStatus(**result)


# ============================================================================
# STANDALONE SMS VERIFICATION
# ============================================================================

@sms_router.post(
    "/send-verification",
    response_model=SendCodeResponse,
    dependencies=[Depends(rate_limit(3, FIVE_MINUTES))]
)
async def send_verification(request: SendCodeRequest) -> SendCodeResponse:
    result = await sms_verification_service.send_verification_code(request.phone_number)

    if not result["success"]:
        if result.get("error_code") in ("invalid_phone", "code_pending"):
            raise BadRequestError(
                result["error"],
                code=result["error_code"].upper(),
                details={"retry_after": result.get("retry_after")}
            )
        raise ExternalServiceError(SMS_SEND_FAILED_MESSAGE)

    return SendCodeResponse(
        success=True,
        message=result["message"],
        message_id=result["message_id"],
        expires_in=result["expires_in"]
    )


@sms_router.post("/verify-code", response_model=VerifyCodeResponse)
async def verify_code(request: VerifyCodeRequest) -> VerifyCodeResponse:
    result = await verification_flow_service.verify_phone(request.phone_number, request.code)
    return VerifyCodeResponse(**result)


@sms_router.get("/verification-status/{phone_number}", response_model=VerificationStatusResponse)
async def verification_status(phone_number: str) -> VerificationStatusResponse:
    if not format_phone_number(phone_number):
        raise BadRequestError(INVALID_PHONE_MESSAGE, code="INVALID_PHONE")
    return VerificationStatusResponse(**sms_verification_service.get_verification_status(phone_number))


@sms_router.get("/test-connection", response_model=SmsConnectionResponse)
async def test_connection() -> SmsConnectionResponse:
    """Reports whether codes go through Twilio. Hidden in production."""
    if settings.is_production:
        raise ResourceNotFoundError("Not Found")
    return SmsConnectionResponse(**await sms_verification_service.test_connection())


@sms_router.get("/debug", response_model=SmsDebugResponse)
async def debug_info() -> SmsDebugResponse:
    info = sms_verification_service.get_debug_info()
    if info is None:
        raise ResourceNotFoundError("Not Found")
    return SmsDebugResponse(**info)
