import asyncio

from app.services import email_sequence_service
from app.services.email_sequence_service import generate_unsubscribe_token

LEAD_EMAIL = "camille.martin@orange.fr"


def schedule(guide, email=LEAD_EMAIL, persona="presse"):
    result = asyncio.run(email_sequence_service.trigger_sequence(
        guide["id"], email, "Camille", persona, process_now=False
    ))
    return result["sequence_ids"]


def test_admin_routes_require_token(client):
    assert client.get("/api/admin/email-sequences").status_code == 401
    assert client.post("/api/admin/email-sequences/process").status_code == 401


def test_list_filter_and_stats(client, guide, admin_headers):
    schedule(guide)
    schedule(guide, email="paul.durand@gmail.com", persona="investisseur")

    listing = client.get("/api/admin/email-sequences?persona=presse", headers=admin_headers).json()
    assert listing["total"] == 4
    assert {row["lead_email"] for row in listing["sequences"]} == {LEAD_EMAIL}

    stats = client.get("/api/admin/email-sequences/stats", headers=admin_headers).json()
    assert stats["total"] == 8
    assert stats["scheduled"] == 8
    assert stats["by_persona"] == {"presse": 4, "investisseur": 4}


def test_trigger_then_duplicate(client, guide, sent_emails, admin_headers):
    payload = {
        "guide_id": guide["id"],
        "lead_email": LEAD_EMAIL,
        "lead_first_name": "Camille",
        "persona": "presse",
        "lead_city": "Talence"
    }

    created = client.post("/api/admin/email-sequences/trigger", json=payload, headers=admin_headers)
    assert created.status_code == 200
    assert len(created.json()["sequence_ids"]) == 4

    duplicate = client.post("/api/admin/email-sequences/trigger", json=payload, headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Sequence already exists"


def test_trigger_unknown_persona(client, guide, admin_headers):
    response = client.post("/api/admin/email-sequences/trigger", json={
        "guide_id": guide["id"],
        "lead_email": LEAD_EMAIL,
        "lead_first_name": "Camille",
        "persona": "curieux"
    }, headers=admin_headers)

    assert response.status_code == 422


def test_setup_templates_then_process(client, guide, sent_emails, admin_headers):
    setup = client.post("/api/admin/email-sequences/setup-templates", headers=admin_headers)
    assert setup.json() == {"success": True, "created": 24, "deleted": 0, "errors": []}

    schedule(guide)
    processed = client.post("/api/admin/email-sequences/process", headers=admin_headers)

    assert processed.json() == {"sent": 1, "failed": 0}
    assert [e["category"] for e in sent_emails] == ["guide_delivery_presse"]


def test_lead_rows_update_and_cancel(client, guide, admin_headers):
    ids = schedule(guide)

    rows = client.get(f"/api/admin/email-sequences/lead/{LEAD_EMAIL}", headers=admin_headers).json()
    assert [row["id"] for row in rows] == ids

    rescheduled = client.put(
        f"/api/admin/email-sequences/{ids[1]}",
        json={"scheduled_for": "2026-12-01T10:00:00+01:00"},
        headers=admin_headers
    )
    assert rescheduled.status_code == 200
    assert rescheduled.json()["scheduled_for"] == "2026-12-01T09:00:00"

    invalid = client.put(f"/api/admin/email-sequences/{ids[1]}", json={"status": "paused"}, headers=admin_headers)
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Invalid status"

    sent = client.put(f"/api/admin/email-sequences/{ids[0]}", json={"status": "sent"}, headers=admin_headers)
    assert sent.json()["status"] == "sent"

    conflict = client.delete(f"/api/admin/email-sequences/{ids[0]}", headers=admin_headers)
    assert conflict.status_code == 409

    cancelled = client.delete(f"/api/admin/email-sequences/{ids[2]}", headers=admin_headers)
    assert cancelled.json()["status"] == "cancelled"

    missing = client.delete("/api/admin/email-sequences/unknown", headers=admin_headers)
    assert missing.status_code == 404


def test_unsubscribe_flow(client, guide):
    ids = schedule(guide)
    token = generate_unsubscribe_token(LEAD_EMAIL, ids[0])

    info = client.get(f"/api/unsubscribe/{token}")
    assert info.json() == {"email": LEAD_EMAIL, "active_sequences": 4, "personas": ["presse"]}

    response = client.post("/api/unsubscribe", json={"token": token})
    assert response.json() == {
        "success": True,
        "message": "Vous avez été désinscrit avec succès",
        "cancelled": 4
    }

    assert client.get(f"/api/unsubscribe/{token}").json()["active_sequences"] == 0


def test_unsubscribe_invalid_token(client):
    response = client.post("/api/unsubscribe", json={"token": "invalid"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TOKEN"
    assert client.get("/api/unsubscribe/invalid").status_code == 400
