"""
app/services/email_sequence_service.py

Purpose: Persona email drip sequences

- Schedules four emails (day 0, 2, 5, 10) per lead, guide and persona
- Sends due emails through the templated email sender
- Admin listing, stats, status updates and cancellation
- Signed unsubscribe tokens
"""

import asyncio
import base64
import binascii
import hashlib
import hmac
import re
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple

from app.db.mongo import get_email_sequences_collection
from app.core.config import settings
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging import get_logger, LogContext
from app.flow.states import SequenceStatus, is_valid_sequence_transition
from app.services import email_template_service, guide_service
from app.services.email_service import email_service
from utils.constants import (
    PERSONA_LABELS,
    SEQUENCE_STEPS,
    DEFAULT_LEAD_CITY,
    DEFAULT_CITY_LABEL,
    GUIDE_NOT_FOUND_MESSAGE,
    SEQUENCE_EXISTS_MESSAGE,
    SEQUENCE_NOT_FOUND_MESSAGE,
    INVALID_STATUS_MESSAGE,
    INVALID_TOKEN_MESSAGE,
)
from utils.time_utils import utcnow
from utils.validation_utils import mask_email

logger = get_logger(__name__)

PROJECTION = {"_id": 0}
SEQUENCE_STATUSES = [status.value for status in SequenceStatus]

# Serialises processing runs (scheduler, trigger, admin) within this process
_processing_lock = asyncio.Lock()


# ============================================================
# UNSUBSCRIBE TOKENS
# ============================================================

def _sign(payload: str) -> str:
    digest = hmac.new(settings.SECRET_KEY.encode(), payload.encode(), hashlib.sha256).hexdigest()
    return digest[:16]


def generate_unsubscribe_token(email: str, sequence_id: str) -> str:
    """urlsafe base64 of "email:sequence_id:signature"."""
    payload = f"{email}:{sequence_id}"
    raw = f"{payload}:{_sign(payload)}"
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def decode_unsubscribe_token(token: str) -> Optional[Tuple[str, str]]:
    """
    Returns:
        (email, sequence_id) or None if the token is malformed or forged
    """
    if not token:
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    parts = raw.rsplit(":", 2)
    if len(parts) != 3:
        return None

    email, sequence_id, signature = parts
    if not email or "@" not in email or not sequence_id:
        return None
    if not hmac.compare_digest(signature, _sign(f"{email}:{sequence_id}")):
        return None

    return email, sequence_id


def build_unsubscribe_link(email: str, sequence_id: str) -> str:
    token = generate_unsubscribe_token(email, sequence_id)
    return f"{settings.APP_URL}/unsubscribe?token={token}"


# ============================================================
# VARIABLES
# ============================================================

def extract_first_name(email: str) -> str:
    """
    "jean.dupont@mail.fr" -> "Jean", "marie_2@mail.fr" -> "Marie"
    """
    local = (email or "").split("@")[0]
    return re.split(r"[._\-\d+]", local)[0].capitalize()


def build_email_variables(sequence: Dict[str, Any], guide: Dict[str, Any]) -> Dict[str, Any]:
    city = sequence.get("lead_city")
    if not city or city == DEFAULT_LEAD_CITY:
        city = DEFAULT_CITY_LABEL

    persona = sequence["persona"]
    return {
        "first_name": sequence.get("lead_first_name") or extract_first_name(sequence["lead_email"]),
        "city": city,
        "email": sequence["lead_email"],
        "guide_title": guide.get("title", ""),
        "guide_slug": guide.get("slug", ""),
        "persona": persona,
        "persona_label": PERSONA_LABELS.get(persona, persona),
        "unsubscribe_link": build_unsubscribe_link(sequence["lead_email"], sequence["id"]),
        "sequence_step": sequence.get("sequence_step", 0),
        "current_year": utcnow().year,
        "site_url": settings.APP_URL,
    }


# ============================================================
# SCHEDULING
# ============================================================

async def trigger_sequence(
    guide_id: str,
    lead_email: str,
    lead_first_name: str,
    persona: str,
    lead_city: Optional[str] = None,
    process_now: bool = True
) -> Dict[str, Any]:
    """
    Schedules the four emails of a persona sequence.

    Args:
        guide_id: Guide the lead downloaded
        lead_email: Recipient
        lead_first_name: Recipient first name
        persona: One of PERSONA_LABELS
        lead_city: Optional city used in templates
        process_now: Send due emails (day 0) immediately

    Returns:
        {"success": True, "sequence_ids": [...]} or
        {"success": False, "error": "Sequence already exists"}

    Raises:
        ValidationError: If persona is unknown
        ResourceNotFoundError: If the guide does not exist
    """
    if persona not in PERSONA_LABELS:
        raise ValidationError(f"Persona inconnue : {persona}", details={"allowed": list(PERSONA_LABELS)})

    with LogContext(lead_email=mask_email(lead_email), persona=persona):
        sequences = get_email_sequences_collection()

        existing = await sequences.find_one({
            "lead_email": lead_email,
            "guide_id": guide_id,
            "persona": persona,
            "status": {"$in": [SequenceStatus.SCHEDULED.value, SequenceStatus.SENT.value]}
        }, PROJECTION)
        if existing:
            logger.info("Sequence already exists, skipping")
            return {"success": False, "error": SEQUENCE_EXISTS_MESSAGE}

        guide = await guide_service.get_guide_by_id(guide_id)
        if not guide:
            raise ResourceNotFoundError(GUIDE_NOT_FOUND_MESSAGE)

        now = utcnow()
        rows = [
            {
                "id": str(uuid.uuid4()),
                "guide_id": guide_id,
                "lead_email": lead_email,
                "lead_first_name": lead_first_name,
                "lead_city": lead_city or DEFAULT_LEAD_CITY,
                "persona": persona,
                "sequence_step": day_offset,
                "email_type": email_type,
                "scheduled_for": now + timedelta(days=day_offset),
                "sent_at": None,
                "status": SequenceStatus.SCHEDULED.value,
                "error_message": None,
                "created_at": now,
                "updated_at": now
            }
            for day_offset, email_type in SEQUENCE_STEPS
        ]

        await sequences.insert_many([dict(row) for row in rows])
        logger.info(f"📅 Sequence scheduled: {len(rows)} emails for guide {guide.get('slug')}")

    if process_now:
        await process_scheduled_emails()

    return {"success": True, "sequence_ids": [row["id"] for row in rows]}


async def process_scheduled_emails(now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Sends every scheduled email whose time has come, oldest first.

    Returns:
        {"sent": int, "failed": int}
    """
    async with _processing_lock:
        now = now or utcnow()
        sequences = get_email_sequences_collection()

        due = await (
            sequences.find(
                {"status": SequenceStatus.SCHEDULED.value, "scheduled_for": {"$lte": now}},
                PROJECTION
            )
            .sort("scheduled_for", 1)
            .to_list(length=None)
        )

        if not due:
            logger.debug("No sequence emails due")
            return {"sent": 0, "failed": 0}

        logger.info(f"📬 Processing {len(due)} due sequence email(s)")
        sent = 0
        failed = 0

        for row in due:
            with LogContext(sequence_id=row["id"], persona=row["persona"]):
                try:
                    result = await send_sequence_email(row)
                except Exception as e:
                    logger.error(f"❌ Sequence email crashed: {e}", exc_info=True)
                    result = {"success": False, "error": str(e)}

                if result["success"]:
                    await _set_status(row["id"], SequenceStatus.SENT, sent_at=utcnow())
                    sent += 1
                else:
                    await _set_status(row["id"], SequenceStatus.FAILED, error_message=result.get("error"))
                    logger.warning(f"Sequence email failed: {result.get('error')}")
                    failed += 1

        logger.info(f"✅ Sequence run finished: {sent} sent, {failed} failed")
        return {"sent": sent, "failed": failed}


async def send_sequence_email(sequence: Dict[str, Any]) -> Dict[str, Any]:
    """
    Renders and sends one sequence email and records it in the email history.

    Returns:
        {"success": bool, "error": str | None}
    """
    category = f"{sequence['email_type']}_{sequence['persona']}"

    template = await email_template_service.get_active_template(category)
    if not template:
        return {"success": False, "error": f"No active template for {category}"}

    guide = await guide_service.get_guide_by_id(sequence["guide_id"])
    if not guide:
        return {"success": False, "error": GUIDE_NOT_FOUND_MESSAGE}

    variables = build_email_variables(sequence, guide)
    result = await email_service.send_templated_email(
        template,
        variables,
        to_email=sequence["lead_email"],
        to_name=variables["first_name"]
    )

    await email_template_service.record_email_history({
        **result["email_history"],
        "sequence_id": sequence["id"]
    })

    return {"success": result["success"], "error": result.get("error")}


async def _set_status(
    sequence_id: str,
    status: SequenceStatus,
    sent_at: Optional[datetime] = None,
    error_message: Optional[str] = None
):
    updates: Dict[str, Any] = {"status": status.value, "updated_at": utcnow()}
    if sent_at is not None:
        updates["sent_at"] = sent_at
    if error_message is not None:
        updates["error_message"] = error_message

    sequences = get_email_sequences_collection()
    await sequences.update_one({"id": sequence_id}, {"$set": updates})


# ============================================================
# UNSUBSCRIBE
# ============================================================

async def unsubscribe(token: str) -> Dict[str, Any]:
    """
    Cancels every scheduled email of the token's address.

    Raises:
        BadRequestError: If the token is invalid
    """
    decoded = decode_unsubscribe_token(token)
    if not decoded:
        raise BadRequestError(INVALID_TOKEN_MESSAGE, code="INVALID_TOKEN")

    email, _ = decoded
    sequences = get_email_sequences_collection()
    result = await sequences.update_many(
        {"lead_email": email, "status": SequenceStatus.SCHEDULED.value},
        {"$set": {"status": SequenceStatus.CANCELLED.value, "updated_at": utcnow()}}
    )

    with LogContext(lead_email=mask_email(email)):
        logger.info(f"🚫 Unsubscribed: {result.modified_count} email(s) cancelled")

    return {"success": True, "email": email, "cancelled": result.modified_count}


async def get_unsubscribe_info(token: str) -> Dict[str, Any]:
    decoded = decode_unsubscribe_token(token)
    if not decoded:
        raise BadRequestError(INVALID_TOKEN_MESSAGE, code="INVALID_TOKEN")

    email, _ = decoded
    sequences = get_email_sequences_collection()
    active = await sequences.find(
        {"lead_email": email, "status": SequenceStatus.SCHEDULED.value},
        PROJECTION
    ).to_list(length=None)

    return {
        "email": email,
        "active_sequences": len(active),
        "personas": sorted({row["persona"] for row in active})
    }


# ============================================================
# ADMIN
# ============================================================

async def get_sequence_stats() -> Dict[str, Any]:
    sequences = get_email_sequences_collection()

    stats: Dict[str, Any] = {"total": await sequences.count_documents({})}
    for status in SEQUENCE_STATUSES:
        stats[status] = await sequences.count_documents({"status": status})

    by_persona = {}
    for persona in PERSONA_LABELS:
        count = await sequences.count_documents({"persona": persona})
        if count:
            by_persona[persona] = count
    stats["by_persona"] = by_persona

    return stats


async def list_sequences(
    lead_email: Optional[str] = None,
    persona: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if lead_email:
        query["lead_email"] = lead_email
    if persona:
        query["persona"] = persona
    if status and status != "all":
        query["status"] = status

    sequences = get_email_sequences_collection()
    total = await sequences.count_documents(query)
    items = await (
        sequences.find(query, PROJECTION)
        .sort("scheduled_for", -1)
        .skip(offset)
        .limit(limit)
        .to_list(length=limit)
    )

    return {"sequences": items, "total": total, "limit": limit, "offset": offset}


async def get_lead_sequences(email: str) -> List[Dict[str, Any]]:
    sequences = get_email_sequences_collection()
    return await (
        sequences.find({"lead_email": email}, PROJECTION)
        .sort("scheduled_for", 1)
        .to_list(length=None)
    )


async def get_sequence(sequence_id: str) -> Dict[str, Any]:
    sequences = get_email_sequences_collection()
    row = await sequences.find_one({"id": sequence_id}, PROJECTION)
    if not row:
        raise ResourceNotFoundError(SEQUENCE_NOT_FOUND_MESSAGE)
    return row


async def update_sequence(
    sequence_id: str,
    status: Optional[str] = None,
    scheduled_for: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Raises:
        BadRequestError: Unknown status
        ResourceNotFoundError: Unknown sequence
        ConflictError: Transition not allowed from the current status
    """
    if status is not None and status not in SEQUENCE_STATUSES:
        raise BadRequestError(INVALID_STATUS_MESSAGE, details={"allowed": SEQUENCE_STATUSES})

    row = await get_sequence(sequence_id)
    updates: Dict[str, Any] = {"updated_at": utcnow()}

    if status is not None:
        current = SequenceStatus(row["status"])
        target = SequenceStatus(status)
        if not is_valid_sequence_transition(current, target):
            raise ConflictError(
                f"Cannot change status from {current.value} to {target.value}",
                details={"status": current.value}
            )
        updates["status"] = target.value
        if target == SequenceStatus.SENT:
            updates["sent_at"] = utcnow()

    if scheduled_for is not None:
        # Stored naive UTC like every other timestamp
        if scheduled_for.tzinfo is not None:
            scheduled_for = (scheduled_for - scheduled_for.utcoffset()).replace(tzinfo=None)
        updates["scheduled_for"] = scheduled_for

    sequences = get_email_sequences_collection()
    await sequences.update_one({"id": sequence_id}, {"$set": updates})

    with LogContext(sequence_id=sequence_id):
        logger.info(f"Sequence updated: {sorted(k for k in updates if k != 'updated_at')}")

    return await get_sequence(sequence_id)


async def cancel_sequence(sequence_id: str) -> Dict[str, Any]:
    return await update_sequence(sequence_id, status=SequenceStatus.CANCELLED.value)
