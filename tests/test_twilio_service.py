import base64
from urllib.parse import parse_qs

import httpx
import pytest

from app.services.twilio_service import TwilioService

ACCOUNT_SID = "AC0123456789abcdef0123456789abcdef"
VERIFY_SID = "VA0123456789abcdef0123456789abcdef"


def make_service(handler, **kwargs):
    options = {
        "account_sid": ACCOUNT_SID,
        "auth_token": "secret-token",
        "verify_service_sid": VERIFY_SID,
        "transport": httpx.MockTransport(handler),
        **kwargs,
    }
    return TwilioService(**options)


def form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


@pytest.mark.asyncio
async def test_start_verification_posts_to_verify_service():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"sid": "VE42", "status": "pending"})

    result = await make_service(handler).start_verification("+33612345678")

    assert result == {"success": True, "sid": "VE42", "status": "pending"}
    request = seen[0]
    assert str(request.url) == f"https://verify.twilio.com/v2/Services/{VERIFY_SID}/Verifications"
    assert form(request) == {"To": "+33612345678", "Channel": "sms"}
    expected_auth = base64.b64encode(f"{ACCOUNT_SID}:secret-token".encode()).decode()
    assert request.headers["authorization"] == f"Basic {expected_auth}"


@pytest.mark.asyncio
async def test_check_verification_reports_approval():
    statuses = iter(["approved", "pending"])

    def handler(request):
        assert request.url.path.endswith("/VerificationCheck")
        assert form(request) == {"To": "+33612345678", "Code": "482913"}
        return httpx.Response(200, json={"status": next(statuses)})

    service = make_service(handler)

    assert await service.check_verification("+33612345678", "482913") == {
        "success": True, "approved": True, "status": "approved"
    }
    assert (await service.check_verification("+33612345678", "482913"))["approved"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, twilio_code, error_code", [
    (429, 60202, "max_attempts"),
    (404, 20404, "not_found"),
    (400, 60200, "invalid_parameter"),
    (400, 21211, "invalid_phone"),
    (400, 99999, "api_error"),
])
async def test_twilio_error_codes_are_mapped(status_code, twilio_code, error_code):
    def handler(request):
        return httpx.Response(status_code, json={"code": twilio_code, "message": "Twilio says no"})

    result = await make_service(handler).check_verification("+33612345678", "482913")

    assert result == {
        "success": False,
        "error": "Twilio says no",
        "error_code": error_code,
        "twilio_code": twilio_code,
        "status_code": status_code,
    }


@pytest.mark.asyncio
async def test_non_json_error_body():
    def handler(request):
        return httpx.Response(502, text="<html>Bad gateway</html>")

    result = await make_service(handler).send_sms("+33612345678", "Votre code : 482913")

    assert result["error"] == "Twilio API error: 502"
    assert result["error_code"] == "api_error"
    assert result["twilio_code"] is None


@pytest.mark.asyncio
async def test_transport_failures_never_raise():
    def timeout(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert (await make_service(timeout).start_verification("+33612345678"))["error_code"] == "timeout"
    assert (await make_service(refused).start_verification("+33612345678"))["error_code"] == "transport"


@pytest.mark.asyncio
async def test_send_sms_and_fetch_account_use_account_url():
    urls = []

    def handler(request):
        urls.append(str(request.url))
        if request.method == "GET":
            return httpx.Response(200, json={"status": "active", "friendly_name": "Estimation Gironde"})
        return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

    service = make_service(handler, from_number="+33756800000")

    assert (await service.send_sms("+33612345678", "Bonjour"))["message_sid"] == "SM1"
    assert (await service.fetch_account())["account_status"] == "active"
    assert urls == [
        f"https://api.twilio.com/2010-04-01/Accounts/{ACCOUNT_SID}/Messages.json",
        f"https://api.twilio.com/2010-04-01/Accounts/{ACCOUNT_SID}.json",
    ]


@pytest.mark.asyncio
async def test_unconfigured_service_makes_no_request(monkeypatch):
    def handler(request):
        raise AssertionError("no request expected")

    service = make_service(handler)
    monkeypatch.setattr(service, "account_sid", None)

    assert (await service.start_verification("+33612345678"))["error_code"] == "not_configured"
    assert (await service.send_sms("+33612345678", "x"))["error_code"] == "not_configured"
