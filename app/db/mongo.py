"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: leads, auth_sessions, lead_tokens, guides,
  email_templates, email_history, guide_email_sequences
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            await _client.admin.command("ping")

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


async def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def _get_collection(name: str):
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database[name]


def get_leads_collection():
    """
    Returns the leads collection.

    Fields: id, email, phone, first_name, last_name, property fields
    (property_type, address, city, postal_code, surface, rooms, ...),
    estimated_value, financing fields, source, lead_type, status,
    consent_at, consent_source, ip_address, guide_slug, notes,
    created_at, updated_at
    """
    return _get_collection("leads")


def get_auth_sessions_collection():
    """
    Returns the auth_sessions collection (homepage SMS gate).

    Fields: id, phone_number, email, first_name, property_data,
    is_email_verified, is_sms_verified, verification_sid, state,
    state_history, lead_id, created_at, expires_at (TTL)
    """
    return _get_collection("auth_sessions")


def get_lead_tokens_collection():
    """Returns the lead_tokens collection (token, lead_id, context, expires_at)."""
    return _get_collection("lead_tokens")


def get_guides_collection():
    return _get_collection("guides")


def get_email_templates_collection():
    return _get_collection("email_templates")


def get_email_history_collection():
    return _get_collection("email_history")


def get_email_sequences_collection():
    """
    Returns the guide_email_sequences collection.

    One document per scheduled email: id, guide_id, lead_email,
    lead_first_name, lead_city, persona, sequence_step, email_type,
    scheduled_for, sent_at, status, error_message, created_at, updated_at
    """
    return _get_collection("guide_email_sequences")
