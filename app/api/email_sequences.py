"""
app/api/email_sequences.py

Email sequence endpoints
========================

Admin (Bearer token), prefix /api/admin/email-sequences:
- GET    ""                  list (filters: lead_email, persona, status)
- GET    /stats              counts per status and persona
- POST   /process            send due emails now
- POST   /trigger            schedule a sequence by hand
- POST   /setup-templates    regenerate the 24 persona templates
- GET    /lead/{email}       every row of a lead
- PUT    /{sequence_id}      change status / reschedule
- DELETE /{sequence_id}      cancel

Public:
- POST /api/unsubscribe
- GET  /api/unsubscribe/{token}
"""

from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from app.api.deps import require_admin
from app.core.exceptions import ConflictError
from app.core.logging import get_logger
from app.schemas.sequences import (
    EmailSequence,
    SequenceListResponse,
    SequenceStatsResponse,
    SequenceUpdateRequest,
    TriggerSequenceRequest,
    TriggerSequenceResponse,
    ProcessResponse,
    SetupTemplatesResponse,
    UnsubscribeRequest,
    UnsubscribeResponse,
    UnsubscribeInfoResponse,
)
from app.services import email_sequence_service
from app.services.email_template_generator import setup_sequence_templates
from utils.constants import UNSUBSCRIBED_MESSAGE

logger = get_logger(__name__)

admin_router = APIRouter(
    prefix="/api/admin/email-sequences",
    tags=["Admin - Email sequences"],
    dependencies=[Depends(require_admin)]
)
public_router = APIRouter(prefix="/api", tags=["Unsubscribe"])


# Literal paths are declared before /{sequence_id}

@admin_router.get("", response_model=SequenceListResponse)
async def list_sequences(
    lead_email: Optional[str] = None,
    persona: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0)
) -> SequenceListResponse:
    result = await email_sequence_service.list_sequences(
        lead_email=lead_email,
        persona=persona,
        status=status,
        limit=limit,
        offset=offset
    )
    return SequenceListResponse(**result)


@admin_router.get("/stats", response_model=SequenceStatsResponse)
async def sequence_stats() -> SequenceStatsResponse:
    return SequenceStatsResponse(**await email_sequence_service.get_sequence_stats())


@admin_router.post("/process", response_model=ProcessResponse)
async def process_sequences() -> ProcessResponse:
    """Runs the same job as the scheduler, immediately."""
    logger.info("Manual sequence processing requested")
    return ProcessResponse(**await email_sequence_service.process_scheduled_emails())


@admin_router.post("/trigger", response_model=TriggerSequenceResponse)
async def trigger_sequence(request: TriggerSequenceRequest) -> TriggerSequenceResponse:
    result = await email_sequence_service.trigger_sequence(
        guide_id=request.guide_id,
        lead_email=request.lead_email,
        lead_first_name=request.lead_first_name,
        persona=request.persona,
        lead_city=request.lead_city
    )
    if not result["success"]:
        raise ConflictError(result["error"])
    return TriggerSequenceResponse(**result)


@admin_router.post("/setup-templates", response_model=SetupTemplatesResponse)
async def setup_templates() -> SetupTemplatesResponse:
    return SetupTemplatesResponse(**await setup_sequence_templates())


@admin_router.get("/lead/{email}", response_model=List[EmailSequence])
async def lead_sequences(email: str) -> List[EmailSequence]:
    rows = await email_sequence_service.get_lead_sequences(email)
    return [EmailSequence(**row) for row in rows]


@admin_router.put("/{sequence_id}", response_model=EmailSequence)
async def update_sequence(sequence_id: str, request: SequenceUpdateRequest) -> EmailSequence:
    row = await email_sequence_service.update_sequence(
        sequence_id,
        status=request.status,
        scheduled_for=request.scheduled_for
    )
    return EmailSequence(**row)


@admin_router.delete("/{sequence_id}", response_model=EmailSequence)
async def cancel_sequence(sequence_id: str) -> EmailSequence:
    return EmailSequence(**await email_sequence_service.cancel_sequence(sequence_id))


# ============================================================================
# UNSUBSCRIBE
# ============================================================================

@public_router.post("/unsubscribe", response_model=UnsubscribeResponse)
async def unsubscribe(request: UnsubscribeRequest) -> UnsubscribeResponse:
    result = await email_sequence_service.unsubscribe(request.token)
    return UnsubscribeResponse(success=True, message=UNSUBSCRIBED_MESSAGE, cancelled=result["cancelled"])


@public_router.get("/unsubscribe/{token}", response_model=UnsubscribeInfoResponse)
async def unsubscribe_info(token: str) -> UnsubscribeInfoResponse:
    return UnsubscribeInfoResponse(**await email_sequence_service.get_unsubscribe_info(token))
