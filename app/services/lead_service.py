"""
app/services/lead_service.py

Purpose: Lead data management

- Create lead records from every capture form
- List and update leads for the admin
- Short-lived lead tokens that let the site reload a lead's context
"""

import secrets
import uuid
from datetime import timedelta
from typing import Optional, Dict, Any, List, Tuple

from app.db.mongo import get_leads_collection, get_lead_tokens_collection
from app.core.config import settings
from app.core.exceptions import ResourceNotFoundError, BadRequestError
from app.core.logging import get_logger, LogContext
from utils.constants import (
    LEAD_STATUSES,
    LEAD_NOT_FOUND_MESSAGE,
    LEAD_TOKEN_INVALID_MESSAGE,
    INVALID_STATUS_MESSAGE,
)
from utils.time_utils import utcnow, is_expired
from utils.validation_utils import mask_email

logger = get_logger(__name__)

PROJECTION = {"_id": 0}

LEAD_FIELDS = (
    "email", "phone", "first_name", "last_name",
    "property_type", "address", "city", "postal_code",
    "surface", "rooms", "bedrooms", "bathrooms",
    "has_garden", "has_parking", "has_balcony", "construction_year",
    "estimated_value", "financing_project_type", "project_amount",
    "source", "lead_type", "consent_at", "consent_source",
    "ip_address", "guide_slug", "notes",
)


async def create_lead(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Creates a lead. Unknown keys are ignored; missing ones are stored as None.

    Args:
        data: Lead fields (see LEAD_FIELDS)

    Returns:
        Lead document
    """
    now = utcnow()
    lead = {field: data.get(field) for field in LEAD_FIELDS}
    lead.update({
        "id": str(uuid.uuid4()),
        "status": data.get("status") or "new",
        "created_at": now,
        "updated_at": now
    })

    leads = get_leads_collection()
    await leads.insert_one(dict(lead))

    with LogContext(lead_email=mask_email(lead.get("email") or "")):
        logger.info(f"✅ Lead created: {lead['id']} ({lead.get('lead_type')})")

    return lead


async def get_lead(lead_id: str) -> Dict[str, Any]:
    leads = get_leads_collection()
    lead = await leads.find_one({"id": lead_id}, PROJECTION)
    if not lead:
        raise ResourceNotFoundError(LEAD_NOT_FOUND_MESSAGE)
    return lead


async def list_leads(
    status: Optional[str] = None,
    lead_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Lists leads, newest first.

    Returns:
        (leads, total matching)
    """
    query: Dict[str, Any] = {}
    if status and status != "all":
        query["status"] = status
    if lead_type:
        query["lead_type"] = lead_type

    leads = get_leads_collection()
    total = await leads.count_documents(query)
    items = await (
        leads.find(query, PROJECTION)
        .sort("created_at", -1)
        .skip(offset)
        .limit(limit)
        .to_list(length=limit)
    )
    return items, total


async def update_lead_status(lead_id: str, status: str, notes: Optional[str] = None) -> Dict[str, Any]:
    """
    Raises:
        BadRequestError: If status is not a known lead status
        ResourceNotFoundError: If the lead does not exist
    """
    if status not in LEAD_STATUSES:
        raise BadRequestError(INVALID_STATUS_MESSAGE, details={"allowed": LEAD_STATUSES})

    updates: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if notes is not None:
        updates["notes"] = notes

    leads = get_leads_collection()
    result = await leads.update_one({"id": lead_id}, {"$set": updates})
    if result.matched_count == 0:
        raise ResourceNotFoundError(LEAD_NOT_FOUND_MESSAGE)

    logger.info(f"Lead {lead_id} status -> {status}")
    return await get_lead(lead_id)


async def create_lead_token(lead_id: str, context: Dict[str, Any]) -> str:
    """
    Issues a random token giving access to context for LEAD_TOKEN_TTL_HOURS.
    """
    token = secrets.token_hex(32)
    now = utcnow()

    tokens = get_lead_tokens_collection()
    await tokens.insert_one({
        "token": token,
        "lead_id": lead_id,
        "context": context,
        "created_at": now,
        "expires_at": now + timedelta(hours=settings.LEAD_TOKEN_TTL_HOURS)
    })
    return token


async def get_lead_context(token: str) -> Dict[str, Any]:
    """
    Raises:
        ResourceNotFoundError: If the token is unknown or expired
    """
    tokens = get_lead_tokens_collection()
    entry = await tokens.find_one({"token": token}, PROJECTION)

    # TTL deletion runs about once a minute, so expiry is also checked here
    if not entry or is_expired(entry.get("expires_at")):
        raise ResourceNotFoundError(LEAD_TOKEN_INVALID_MESSAGE)

    return {"lead_id": entry["lead_id"], "context": entry.get("context", {})}
