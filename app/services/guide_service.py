"""
app/services/guide_service.py

Purpose: Guide lookups

- Fetch guides by id or slug
- Create guides (seeding)
"""

import uuid
from typing import Optional, Dict, Any, List

from app.db.mongo import get_guides_collection
from app.core.logging import get_logger
from utils.time_utils import utcnow

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


async def get_guide_by_id(guide_id: str) -> Optional[Dict[str, Any]]:
    guides = get_guides_collection()
    return await guides.find_one({"id": guide_id}, PROJECTION)


async def get_guide_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    """Returns an active guide by slug, or None."""
    guides = get_guides_collection()
    return await guides.find_one({"slug": slug, "is_active": True}, PROJECTION)


async def list_guides(persona: Optional[str] = None) -> List[Dict[str, Any]]:
    guides = get_guides_collection()
    query: Dict[str, Any] = {"is_active": True}
    if persona:
        query["persona"] = persona
    return await guides.find(query, PROJECTION).sort("sort_order", 1).to_list(length=None)


async def create_guide(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Creates a guide.

    Args:
        data: title, slug, persona and optional short_benefit, reading_time, content

    Returns:
        Guide document
    """
    now = utcnow()
    guide = {
        "id": str(uuid.uuid4()),
        "title": data["title"],
        "slug": data["slug"],
        "persona": data["persona"],
        "short_benefit": data.get("short_benefit", ""),
        "reading_time": data.get("reading_time", 5),
        "content": data.get("content", ""),
        "is_active": data.get("is_active", True),
        "sort_order": data.get("sort_order", 0),
        "created_at": now,
        "updated_at": now
    }

    guides = get_guides_collection()
    await guides.insert_one(dict(guide))
    logger.info(f"Guide created: {guide['slug']}")
    return guide
