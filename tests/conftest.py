import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.core.config import settings
from app.db import mongo
from app.main import app
from app.services import guide_service
from app.services.email_service import email_service
from app.services.sms_verification_service import sms_verification_service
from app.services.twilio_service import twilio_service
from utils.rate_limit import reset_all_limiters

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Development mode, no Twilio credentials, empty code store and rate limits."""
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(twilio_service, "account_sid", None)
    monkeypatch.setattr(twilio_service, "auth_token", None)
    sms_verification_service.reset()
    reset_all_limiters()
    yield
    sms_verification_service.reset()


@pytest.fixture
def db(monkeypatch):
    database = AsyncMongoMockClient()["gironde_leads_test"]
    monkeypatch.setattr(mongo, "_database", database)
    return database


@pytest.fixture
def client(db):
    # No context manager: the lifespan (real Mongo, scheduler) is not run
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def sent_emails(monkeypatch):
    """Replaces SMTP delivery; every templated send is recorded here."""
    sent = []

    async def fake_send_templated_email(template, variables, to_email, to_name=None):
        sent.append({
            "category": template.get("category"),
            "to_email": to_email,
            "to_name": to_name,
            "variables": variables
        })
        return {
            "success": True,
            "error": None,
            "email_history": {
                "template_id": template.get("id"),
                "recipient_email": to_email,
                "subject": template.get("subject"),
                "status": "sent"
            }
        }

    monkeypatch.setattr(email_service, "send_templated_email", fake_send_templated_email)
    return sent


@pytest.fixture
def guide(db):
    return asyncio.run(guide_service.create_guide({
        "title": "Vendre rapidement en Gironde",
        "slug": "vendre-rapidement-gironde",
        "persona": "presse"
    }))
