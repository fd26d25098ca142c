"""
app/api/leads.py

Lead capture endpoints
======================

Public:
- POST /api/guide-leads          guide download form (emails + drip sequence)
- POST /api/financement-leads    financing form
- GET  /api/lead-context/{token} reload a lead's context from a short-lived token

Admin (Bearer token):
- GET   /api/admin/leads
- PATCH /api/admin/leads/{lead_id}/status
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import require_admin, get_client_ip, get_request_source
from app.core.config import settings
from app.core.exceptions import ResourceNotFoundError, GirondeLeadsError
from app.core.logging import get_logger, LogContext
from app.schemas.leads import (
    GuideLeadRequest,
    GuideLeadResponse,
    FinancingLeadRequest,
    FinancingLeadResponse,
    Lead,
    LeadListResponse,
    LeadStatusUpdate,
    LeadContextResponse,
)
from app.services import email_sequence_service, email_template_service, guide_service, lead_service
from app.services.email_service import email_service
from utils.constants import (
    PERSONA_LABELS,
    LEAD_TYPE_GUIDE,
    LEAD_TYPE_FINANCING,
    DEFAULT_LAST_NAME,
    CONSENT_SOURCE_GUIDE,
    CONSENT_SOURCE_FINANCING,
    TEMPLATE_GUIDE_CONFIRMATION,
    TEMPLATE_FINANCING_CONFIRMATION,
    TEMPLATE_ADMIN_NOTIFICATION,
    GUIDE_NOT_FOUND_MESSAGE,
    GUIDE_SENT_MESSAGE,
    FINANCING_SAVED_MESSAGE,
)
from utils.time_utils import utcnow
from utils.validation_utils import format_phone_number, mask_email

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Leads"])
admin_router = APIRouter(
    prefix="/api/admin/leads",
    tags=["Admin - Leads"],
    dependencies=[Depends(require_admin)]
)


async def send_notification(category: str, variables: Dict[str, Any], to_email: str, to_name: Optional[str] = None) -> bool:
    """
    Sends a stored template if it exists and is active. Failures are logged,
    never raised: a lead is kept even when its emails fail.
    """
    try:
        template = await email_template_service.get_active_template(category)
        if not template:
            logger.info(f"No active '{category}' template, email skipped")
            return False

        result = await email_service.send_templated_email(template, variables, to_email, to_name)
        await email_template_service.record_email_history(result["email_history"])

        if not result["success"]:
            logger.warning(f"'{category}' email failed: {result.get('error')}")
        return result["success"]

    except Exception as e:
        logger.error(f"❌ Error sending '{category}' email: {e}", exc_info=True)
        return False


# ============================================================================
# PUBLIC
# ============================================================================

@router.post("/guide-leads", response_model=GuideLeadResponse)
async def create_guide_lead(payload: GuideLeadRequest, request: Request) -> GuideLeadResponse:
    """
    Captures a guide download, sends the confirmation emails and starts
    the persona email sequence.
    """
    guide = await guide_service.get_guide_by_slug(payload.guide_slug)
    if not guide:
        raise ResourceNotFoundError(GUIDE_NOT_FOUND_MESSAGE)

    persona = payload.persona if payload.persona in PERSONA_LABELS else guide.get("persona")

    with LogContext(lead_email=mask_email(payload.email), persona=persona):
        lead = await lead_service.create_lead({
            "email": payload.email,
            "first_name": payload.first_name,
            "last_name": DEFAULT_LAST_NAME,
            "city": payload.city,
            "guide_slug": payload.guide_slug,
            "source": get_request_source(request),
            "lead_type": LEAD_TYPE_GUIDE,
            "consent_at": utcnow(),
            "consent_source": CONSENT_SOURCE_GUIDE,
            "ip_address": get_client_ip(request),
        })

        variables = {
            "first_name": payload.first_name,
            "email": payload.email,
            "city": payload.city,
            "guide_title": guide.get("title", ""),
            "guide_slug": guide.get("slug", ""),
            "persona": persona,
            "site_url": settings.APP_URL,
            "lead_type": LEAD_TYPE_GUIDE,
            "current_year": utcnow().year,
        }
        await send_notification(TEMPLATE_GUIDE_CONFIRMATION, variables, payload.email, payload.first_name)
        await send_notification(TEMPLATE_ADMIN_NOTIFICATION, variables, settings.ADMIN_EMAIL)

        if persona in PERSONA_LABELS:
            try:
                result = await email_sequence_service.trigger_sequence(
                    guide_id=guide["id"],
                    lead_email=payload.email,
                    lead_first_name=payload.first_name,
                    persona=persona,
                    lead_city=payload.city
                )
                if not result["success"]:
                    logger.info(f"Sequence not triggered: {result.get('error')}")
            except GirondeLeadsError as e:
                logger.error(f"❌ Sequence trigger failed: {e.message}")

        lead_token = await lead_service.create_lead_token(lead["id"], {
            "first_name": payload.first_name,
            "email": payload.email,
            "city": payload.city,
            "guide_slug": payload.guide_slug,
            "persona": persona,
        })

    return GuideLeadResponse(
        success=True,
        message=GUIDE_SENT_MESSAGE,
        lead=Lead(**lead),
        lead_token=lead_token
    )


@router.post("/financement-leads", response_model=FinancingLeadResponse)
async def create_financing_lead(payload: FinancingLeadRequest, request: Request) -> FinancingLeadResponse:
    phone = format_phone_number(payload.phone) if payload.phone else None

    lead = await lead_service.create_lead({
        "email": payload.email,
        "phone": phone or payload.phone,
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "financing_project_type": payload.financing_project_type,
        "project_amount": payload.project_amount,
        "source": get_request_source(request),
        "lead_type": LEAD_TYPE_FINANCING,
        "consent_at": utcnow(),
        "consent_source": CONSENT_SOURCE_FINANCING,
        "ip_address": get_client_ip(request),
    })

    variables = {
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "email": payload.email,
        "phone": lead["phone"] or "",
        "financing_project_type": payload.financing_project_type,
        "project_amount": payload.project_amount,
        "site_url": settings.APP_URL,
        "lead_type": LEAD_TYPE_FINANCING,
        "current_year": utcnow().year,
    }
    await send_notification(TEMPLATE_FINANCING_CONFIRMATION, variables, payload.email, payload.first_name)
    await send_notification(TEMPLATE_ADMIN_NOTIFICATION, variables, settings.ADMIN_EMAIL)

    return FinancingLeadResponse(success=True, message=FINANCING_SAVED_MESSAGE, lead=Lead(**lead))


@router.get("/lead-context/{token}", response_model=LeadContextResponse)
async def get_lead_context(token: str) -> LeadContextResponse:
    return LeadContextResponse(**await lead_service.get_lead_context(token))


# ============================================================================
# ADMIN
# ============================================================================

@admin_router.get("", response_model=LeadListResponse)
async def list_leads(
    status: Optional[str] = None,
    lead_type: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0)
) -> LeadListResponse:
    items, total = await lead_service.list_leads(status=status, lead_type=lead_type, limit=limit, offset=offset)
    return LeadListResponse(leads=[Lead(**item) for item in items], total=total, limit=limit, offset=offset)


@admin_router.patch("/{lead_id}/status", response_model=Lead)
async def update_lead_status(lead_id: str, payload: LeadStatusUpdate) -> Lead:
    return Lead(**await lead_service.update_lead_status(lead_id, payload.status, payload.notes))
