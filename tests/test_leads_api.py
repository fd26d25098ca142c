import asyncio

from app.services import email_template_service, lead_service
from app.services.email_service import email_service
from app.services.email_sequence_service import get_lead_sequences
from app.services.email_template_generator import setup_sequence_templates

GUIDE_PAYLOAD = {
    "first_name": "Camille",
    "email": "camille.martin@orange.fr",
    "city": "Mérignac",
    "guide_slug": "vendre-rapidement-gironde",
    "accept_terms": True
}


def add_template(category):
    asyncio.run(email_template_service.create_template({
        "name": category,
        "subject": "{{first_name}}",
        "html_content": "<p>{{first_name}}</p>",
        "category": category,
    }))


def test_guide_lead_captures_and_starts_sequence(client, guide, sent_emails):
    asyncio.run(setup_sequence_templates())
    add_template("guide_confirmation")
    add_template("admin_notification")

    response = client.post("/api/guide-leads", json=GUIDE_PAYLOAD)

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"]
    assert body["message"] == "Guide envoyé avec succès"
    assert body["lead"]["lead_type"] == "guide_download"
    assert body["lead"]["last_name"] == "Non renseigné"
    assert body["lead"]["consent_source"] == "guide_download_form"
    assert body["lead"]["guide_slug"] == "vendre-rapidement-gironde"
    assert len(body["lead_token"]) == 64

    assert [e["category"] for e in sent_emails] == [
        "guide_confirmation", "admin_notification", "guide_delivery_presse"
    ]
    rows = asyncio.run(get_lead_sequences("camille.martin@orange.fr"))
    assert len(rows) == 4
    assert {r["persona"] for r in rows} == {"presse"}
    assert rows[0]["lead_city"] == "Mérignac"

    context = client.get(f"/api/lead-context/{body['lead_token']}")
    assert context.status_code == 200
    assert context.json() == {
        "lead_id": body["lead"]["id"],
        "context": {
            "first_name": "Camille",
            "email": "camille.martin@orange.fr",
            "city": "Mérignac",
            "guide_slug": "vendre-rapidement-gironde",
            "persona": "presse"
        }
    }


def test_guide_lead_persona_override(client, guide, sent_emails):
    response = client.post("/api/guide-leads", json={**GUIDE_PAYLOAD, "persona": "investisseur"})

    assert response.status_code == 200
    rows = asyncio.run(get_lead_sequences("camille.martin@orange.fr"))
    assert {r["persona"] for r in rows} == {"investisseur"}


def test_guide_lead_kept_when_emails_fail(client, guide, monkeypatch):
    add_template("guide_confirmation")

    async def smtp_down(*args, **kwargs):
        raise OSError("SMTP unreachable")

    monkeypatch.setattr(email_service, "send_templated_email", smtp_down)

    response = client.post("/api/guide-leads", json=GUIDE_PAYLOAD)

    assert response.status_code == 200
    items, total = asyncio.run(lead_service.list_leads())
    assert total == 1


def test_second_download_does_not_duplicate_sequence(client, guide, sent_emails):
    client.post("/api/guide-leads", json=GUIDE_PAYLOAD)
    response = client.post("/api/guide-leads", json=GUIDE_PAYLOAD)

    assert response.status_code == 200
    assert len(asyncio.run(get_lead_sequences("camille.martin@orange.fr"))) == 4


def test_guide_lead_unknown_guide(client, sent_emails):
    response = client.post("/api/guide-leads", json=GUIDE_PAYLOAD)

    assert response.status_code == 404
    assert response.json()["error"] == "Guide non trouvé"


def test_guide_lead_validation(client, guide):
    response = client.post("/api/guide-leads", json={**GUIDE_PAYLOAD, "first_name": " C ", "accept_terms": False})

    assert response.status_code == 422
    fields = {tuple(error["loc"])[-1] for error in response.json()["details"]}
    assert fields == {"first_name", "accept_terms"}

    bad_email = client.post("/api/guide-leads", json={**GUIDE_PAYLOAD, "email": "pas-un-email"})
    assert bad_email.status_code == 422


def test_financing_lead(client, sent_emails):
    add_template("financing_confirmation")

    response = client.post("/api/financement-leads", json={
        "first_name": "Paul",
        "last_name": "Durand",
        "email": "paul.durand@gmail.com",
        "phone": "07 98 76 54 32",
        "financing_project_type": "achat",
        "project_amount": "250000"
    })

    assert response.status_code == 200, response.text
    lead = response.json()["lead"]
    assert response.json()["message"] == "Demande de financement enregistrée"
    assert lead["lead_type"] == "financing"
    assert lead["phone"] == "+33798765432"
    assert lead["consent_source"] == "financing_form"
    assert [e["category"] for e in sent_emails] == ["financing_confirmation"]


def test_lead_context_unknown_token(client):
    response = client.get("/api/lead-context/" + "0" * 64)

    assert response.status_code == 404
    assert response.json()["error"] == "Lien expiré ou invalide"


def test_admin_routes_require_token(client):
    assert client.get("/api/admin/leads").status_code == 401
    assert client.get("/api/admin/leads", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/api/admin/leads", headers={"Authorization": "Basic test-admin-token"}).status_code == 401


def test_admin_list_and_update_status(client, guide, sent_emails, admin_headers):
    client.post("/api/guide-leads", json=GUIDE_PAYLOAD)
    client.post("/api/financement-leads", json={
        "first_name": "Paul",
        "last_name": "Durand",
        "email": "paul.durand@gmail.com",
        "financing_project_type": "rachat de crédit",
        "project_amount": "120000"
    })

    listing = client.get("/api/admin/leads", headers=admin_headers).json()
    assert listing["total"] == 2

    financing = client.get("/api/admin/leads?lead_type=financing", headers=admin_headers).json()
    assert financing["total"] == 1
    lead_id = financing["leads"][0]["id"]

    updated = client.patch(
        f"/api/admin/leads/{lead_id}/status",
        json={"status": "contacted", "notes": "Rappel lundi"},
        headers=admin_headers
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "contacted"
    assert updated.json()["notes"] == "Rappel lundi"

    contacted = client.get("/api/admin/leads?status=contacted", headers=admin_headers).json()
    assert [lead["id"] for lead in contacted["leads"]] == [lead_id]


def test_admin_update_status_errors(client, admin_headers):
    invalid = client.patch("/api/admin/leads/any/status", json={"status": "lost"}, headers=admin_headers)
    assert invalid.status_code == 422

    missing = client.patch("/api/admin/leads/missing/status", json={"status": "archived"}, headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "Lead non trouvé"
