"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- TTL indexes for automatic cleanup of sessions and lead tokens
"""

from app.db.mongo import (
    get_leads_collection,
    get_auth_sessions_collection,
    get_lead_tokens_collection,
    get_guides_collection,
    get_email_templates_collection,
    get_email_history_collection,
    get_email_sequences_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        leads = get_leads_collection()
        sessions = get_auth_sessions_collection()
        tokens = get_lead_tokens_collection()
        guides = get_guides_collection()
        templates = get_email_templates_collection()
        history = get_email_history_collection()
        sequences = get_email_sequences_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # LEADS
        # ==============================================
        await leads.create_index("id", unique=True, name="lead_id_unique")
        await leads.create_index("email", name="lead_email_idx")
        await leads.create_index(
            [("status", 1), ("created_at", -1)],
            name="lead_status_created_idx"
        )
        await leads.create_index("lead_type", name="lead_type_idx")
        logger.debug("Created indexes on leads")

        # ==============================================
        # AUTH SESSIONS
        # ==============================================
        await sessions.create_index("id", unique=True, name="auth_session_id_unique")
        await sessions.create_index("phone_number", name="auth_session_phone_idx")

        # Delete when expires_at is reached
        await sessions.create_index(
            "expires_at",
            expireAfterSeconds=0,
            name="auth_session_expiry_ttl_idx"
        )
        logger.debug("Created indexes on auth_sessions")

        # ==============================================
        # LEAD TOKENS
        # ==============================================
        await tokens.create_index("token", unique=True, name="lead_token_unique")
        await tokens.create_index(
            "expires_at",
            expireAfterSeconds=0,
            name="lead_token_expiry_ttl_idx"
        )
        logger.debug("Created indexes on lead_tokens")

        # ==============================================
        # GUIDES & TEMPLATES
        # ==============================================
        await guides.create_index("id", unique=True, name="guide_id_unique")
        await guides.create_index("slug", unique=True, name="guide_slug_unique")
        await guides.create_index("persona", name="guide_persona_idx")

        await templates.create_index("id", unique=True, name="template_id_unique")
        await templates.create_index(
            [("category", 1), ("is_active", 1)],
            name="template_category_idx"
        )
        logger.debug("Created indexes on guides and email_templates")

        # ==============================================
        # EMAIL HISTORY
        # ==============================================
        await history.create_index(
            [("recipient_email", 1), ("sent_at", -1)],
            name="history_recipient_idx"
        )
        logger.debug("Created indexes on email_history")

        # ==============================================
        # EMAIL SEQUENCES
        # ==============================================
        await sequences.create_index("id", unique=True, name="sequence_id_unique")

        # Due-email scan
        await sequences.create_index(
            [("status", 1), ("scheduled_for", 1)],
            name="sequence_due_idx"
        )

        # Duplicate check on trigger
        await sequences.create_index(
            [("lead_email", 1), ("guide_id", 1), ("persona", 1)],
            name="sequence_lead_guide_persona_idx"
        )
        logger.debug("Created indexes on guide_email_sequences")

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Use with caution! Only for maintenance/migration.
    """
    try:
        collections = [
            get_leads_collection(),
            get_auth_sessions_collection(),
            get_lead_tokens_collection(),
            get_guides_collection(),
            get_email_templates_collection(),
            get_email_history_collection(),
            get_email_sequences_collection(),
        ]

        logger.warning("Dropping all database indexes...")

        for collection in collections:
            await collection.drop_indexes()

        logger.info("✅ All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise
