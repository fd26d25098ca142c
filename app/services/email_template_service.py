"""
app/services/email_template_service.py

Purpose: Email template and history persistence

- Active template lookup by category
- Template creation / bulk deletion (sequence setup)
- Email history records for every templated send
"""

import uuid
from typing import Optional, Dict, Any, List

from app.db.mongo import get_email_templates_collection, get_email_history_collection
from app.core.logging import get_logger
from utils.time_utils import utcnow

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


async def get_active_template(category: str) -> Optional[Dict[str, Any]]:
    """Most recently updated active template of a category, or None."""
    templates = get_email_templates_collection()
    found = await (
        templates.find({"category": category, "is_active": True}, PROJECTION)
        .sort("updated_at", -1)
        .limit(1)
        .to_list(length=1)
    )
    return found[0] if found else None


async def list_templates(category_prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    templates = get_email_templates_collection()
    items = await templates.find({}, PROJECTION).sort("category", 1).to_list(length=None)
    if category_prefix:
        items = [t for t in items if t.get("category", "").startswith(category_prefix)]
    return items


async def create_template(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Args:
        data: name, subject, html_content, category and optional
            text_content, is_active, variables

    Returns:
        Template document
    """
    now = utcnow()
    template = {
        "id": str(uuid.uuid4()),
        "name": data["name"],
        "subject": data["subject"],
        "html_content": data["html_content"],
        "text_content": data.get("text_content"),
        "category": data["category"],
        "is_active": data.get("is_active", True),
        "variables": data.get("variables", []),
        "created_at": now,
        "updated_at": now
    }

    templates = get_email_templates_collection()
    await templates.insert_one(dict(template))
    return template


async def delete_templates_by_categories(categories: List[str]) -> int:
    templates = get_email_templates_collection()
    result = await templates.delete_many({"category": {"$in": categories}})
    if result.deleted_count:
        logger.info(f"Deleted {result.deleted_count} email template(s)")
    return result.deleted_count


async def record_email_history(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Stores an email history entry as built by EmailService.send_templated_email."""
    record = {
        "id": str(uuid.uuid4()),
        **entry,
        "created_at": utcnow()
    }
    history = get_email_history_collection()
    await history.insert_one(dict(record))
    return record


async def list_email_history(recipient_email: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    query = {"recipient_email": recipient_email} if recipient_email else {}
    history = get_email_history_collection()
    return await (
        history.find(query, PROJECTION)
        .sort("created_at", -1)
        .limit(limit)
        .to_list(length=limit)
    )
