import asyncio
from datetime import timedelta

import httpx
import pytest

from app.core.config import settings
from app.db.mongo import get_auth_sessions_collection
from app.services import auth_session_service, lead_service
from app.services.sms_verification_service import sms_verification_service
from app.services.twilio_service import twilio_service
from utils.time_utils import utcnow

START_PAYLOAD = {
    "phone_number": "06 12 34 56 78",
    "first_name": "Camille",
    "email": "camille.martin@orange.fr",
    "property_data": {
        "property_type": "apartment",
        "city": "Bordeaux",
        "postal_code": "33000",
        "surface": 50,
        "rooms": 3
    }
}


@pytest.fixture(autouse=True)
def fixed_code(monkeypatch):
    monkeypatch.setattr(sms_verification_service, "generate_code", lambda: "482913")


def start_session(client, payload=START_PAYLOAD):
    response = client.post("/api/homepage-verification/start", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["session_id"]


def test_start_rejects_invalid_phone(client):
    response = client.post("/api/homepage-verification/start", json={"phone_number": "123456"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PHONE"


def test_full_homepage_flow_creates_lead(client, monkeypatch):
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", ["testclient"])
    session_id = start_session(client)

    sms = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})
    assert sms.status_code == 200
    assert sms.json() == {"success": True, "message": "Code envoyé par SMS", "phone_display": "+*******5678"}

    code = sms_verification_service._records["+33612345678"].code
    verify = client.post(
        "/api/homepage-verification/verify-sms",
        json={"session_id": session_id, "code": code},
        headers={"X-Forwarded-For": "82.64.10.1"}
    )
    assert verify.status_code == 200, verify.text
    body = verify.json()
    assert body["success"]
    assert body["message"] == "Vérification réussie"

    lead = asyncio.run(lead_service.get_lead(body["lead_id"]))
    assert lead["phone"] == "+33612345678"
    assert lead["lead_type"] == "estimation_sms_verified"
    assert lead["consent_source"] == "homepage_sms_verification"
    assert lead["last_name"] == "Non renseigné"
    assert lead["ip_address"] == "82.64.10.1"
    assert lead["estimated_value"] == 210000

    status = client.get(f"/api/homepage-verification/{session_id}").json()
    assert status["state"] == "LEAD_CREATED"
    assert status["is_sms_verified"]
    assert status["lead_id"] == body["lead_id"]


def test_verify_twice_returns_same_lead(client):
    session_id = start_session(client)
    client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    first = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "123456"})
    second = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "123456"})

    assert first.json()["lead_id"] == second.json()["lead_id"]
    items, total = asyncio.run(lead_service.list_leads())
    assert total == 1


def test_verify_before_send_is_refused(client):
    session_id = start_session(client)

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "123456"})

    assert response.status_code == 400
    assert response.json()["code"] == "VERIFICATION_NOT_STARTED"


def test_wrong_code_is_rejected(client):
    session_id = start_session(client)
    client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "999999"})

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "INVALID_CODE"
    assert data["details"]["attempts_remaining"] == 4


def test_malformed_code_is_rejected(client):
    session_id = start_session(client)

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "12ab"})

    assert response.status_code == 400
    assert response.json()["error"] == "Code de vérification invalide"


def test_resend_keeps_pending_code(client):
    session_id = start_session(client)
    client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})
    code = sms_verification_service._records["+33612345678"].code

    again = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    assert again.status_code == 200
    assert sms_verification_service._records["+33612345678"].code == code


def test_expired_session(client):
    session_id = start_session(client)
    session = asyncio.run(auth_session_service.get_session(session_id))
    assert session["state"] == "STARTED"

    asyncio.run(get_auth_sessions_collection().update_one(
        {"id": session_id},
        {"$set": {"expires_at": utcnow() - timedelta(minutes=1)}}
    ))

    response = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    assert response.status_code == 400
    assert response.json()["code"] == "SESSION_EXPIRED"
    assert asyncio.run(auth_session_service.get_session(session_id))["state"] == "EXPIRED"


def test_unknown_session(client):
    response = client.get("/api/homepage-verification/does-not-exist")

    assert response.status_code == 400
    assert response.json()["error"] == "Session expirée ou invalide"


def test_start_is_rate_limited(client):
    for _ in range(3):
        assert client.post("/api/homepage-verification/start", json=START_PAYLOAD).status_code == 200

    response = client.post("/api/homepage-verification/start", json=START_PAYLOAD)

    assert response.status_code == 429
    assert response.json()["details"]["retry_after"] > 0


def test_rotating_forwarded_for_does_not_bypass_rate_limit(client):
    statuses = [
        client.post(
            "/api/homepage-verification/start",
            json=START_PAYLOAD,
            headers={"X-Forwarded-For": f"10.0.0.{i}"}
        ).status_code
        for i in range(5)
    ]

    assert statuses == [200, 200, 200, 429, 429]


def test_forwarded_for_ignored_from_untrusted_peer(client):
    session_id = start_session(client)
    client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    verify = client.post(
        "/api/homepage-verification/verify-sms",
        json={"session_id": session_id, "code": "482913"},
        headers={"X-Forwarded-For": "82.64.10.1"}
    )

    lead = asyncio.run(lead_service.get_lead(verify.json()["lead_id"]))
    assert lead["ip_address"] == "testclient"


def test_standalone_send_and_verify(client):
    sent = client.post("/api/sms/send-verification", json={"phone_number": "07 98 76 54 32"})
    assert sent.status_code == 200
    assert sent.json()["expires_in"] == 600

    pending = client.post("/api/sms/send-verification", json={"phone_number": "07 98 76 54 32"})
    assert pending.status_code == 400
    assert pending.json()["code"] == "CODE_PENDING"

    code = sms_verification_service._records["+33798765432"].code
    verified = client.post("/api/sms/verify-code", json={"phone_number": "0798765432", "code": code})
    assert verified.status_code == 200
    body = verified.json()
    assert body["phone_number"] == "+33798765432"

    session = asyncio.run(auth_session_service.get_session(body["session_id"]))
    assert session["state"] == "SMS_VERIFIED"
    assert session["is_sms_verified"]

    status = client.get("/api/sms/verification-status/+33798765432").json()
    assert status["exists"] and status["is_verified"]


def test_standalone_verify_unknown_code(client):
    response = client.post("/api/sms/verify-code", json={"phone_number": "0798765432", "code": "424242"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CODE"


def test_debug_routes_hidden_outside_development(client, monkeypatch):
    assert client.get("/api/sms/debug").status_code == 200
    assert client.get("/api/sms/test-connection").json()["mode"] == "development"

    monkeypatch.setattr(settings, "ENVIRONMENT", "production")

    assert client.get("/api/sms/debug").status_code == 404
    assert client.get("/api/sms/test-connection").status_code == 404


class FakeTwilioVerify:
    """Answers Verify v2 calls; responses are (status_code, json) pairs."""

    def __init__(self):
        self.send = (201, {"sid": "VE42", "status": "pending"})
        self.check = (200, {"status": "approved"})
        self.paths = []

    def __call__(self, request):
        self.paths.append(request.url.path)
        status_code, payload = self.check if request.url.path.endswith("/VerificationCheck") else self.send
        return httpx.Response(status_code, json=payload)


@pytest.fixture
def twilio_verify(monkeypatch):
    fake = FakeTwilioVerify()
    monkeypatch.setattr(settings, "ENVIRONMENT", "staging")
    monkeypatch.setattr(twilio_service, "account_sid", "AC0123456789abcdef0123456789abcdef")
    monkeypatch.setattr(twilio_service, "auth_token", "secret-token")
    monkeypatch.setattr(twilio_service, "verify_service_sid", "VA0123456789abcdef0123456789abcdef")
    monkeypatch.setattr(twilio_service, "transport", httpx.MockTransport(fake))
    return fake


def send_with_verify(client):
    session_id = start_session(client)
    response = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})
    assert response.status_code == 200, response.text
    return session_id


def test_twilio_verify_flow_creates_lead(client, twilio_verify):
    session_id = send_with_verify(client)

    session = asyncio.run(auth_session_service.get_session(session_id))
    assert session["verification_sid"] == "VE42"
    assert "+33612345678" not in sms_verification_service._records

    verify = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "731904"})

    assert verify.status_code == 200, verify.text
    assert client.get(f"/api/homepage-verification/{session_id}").json()["state"] == "LEAD_CREATED"
    assert [path.rsplit("/", 1)[-1] for path in twilio_verify.paths] == ["Verifications", "VerificationCheck"]


def test_twilio_verify_max_attempts(client, twilio_verify):
    session_id = send_with_verify(client)
    twilio_verify.check = (429, {"code": 60202, "message": "Max check attempts reached"})

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "731904"})

    assert response.status_code == 400
    assert response.json()["code"] == "MAX_ATTEMPTS"
    assert response.json()["error"] == "Trop de tentatives. Demandez un nouveau code."


@pytest.mark.parametrize("check", [
    (404, {"code": 20404, "message": "The requested resource was not found"}),
    (200, {"status": "pending"}),
])
def test_twilio_verify_rejected_code(client, twilio_verify, check):
    session_id = send_with_verify(client)
    twilio_verify.check = check

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "731904"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CODE"
    assert response.json()["error"] == "Code de vérification incorrect"
    assert asyncio.run(auth_session_service.get_session(session_id))["state"] == "SMS_SENT"


def test_twilio_verify_provider_failure(client, twilio_verify):
    session_id = send_with_verify(client)
    twilio_verify.check = (500, {"code": 20500, "message": "Internal Server Error"})

    response = client.post("/api/homepage-verification/verify-sms", json={"session_id": session_id, "code": "731904"})

    assert response.status_code == 502
    assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"
    assert response.json()["error"] == "Erreur lors de l'envoi du SMS"


def test_twilio_verify_send_failure(client, twilio_verify):
    twilio_verify.send = (503, {"code": 20503, "message": "Service Unavailable"})
    session_id = start_session(client)

    response = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})

    assert response.status_code == 502
    assert asyncio.run(auth_session_service.get_session(session_id))["state"] == "STARTED"


def test_connection_check_reaches_twilio_in_staging(client, monkeypatch):
    def handler(request):
        assert request.url.path.endswith("/Accounts/AC0123456789abcdef0123456789abcdef.json")
        return httpx.Response(200, json={"status": "active", "friendly_name": "Estimation Gironde"})

    monkeypatch.setattr(settings, "ENVIRONMENT", "staging")
    monkeypatch.setattr(twilio_service, "account_sid", "AC0123456789abcdef0123456789abcdef")
    monkeypatch.setattr(twilio_service, "auth_token", "secret-token")
    monkeypatch.setattr(twilio_service, "transport", httpx.MockTransport(handler))

    response = client.get("/api/sms/test-connection")

    assert response.status_code == 200
    assert response.json()["mode"] == "production"
    assert response.json()["account_status"] == "active"
    assert client.get("/api/sms/debug").status_code == 404
