"""
app/services/twilio_service.py

Purpose: Twilio SMS and Verify API client

- Sends plain SMS through the Messages API
- Starts and checks verifications through Verify v2
- Never raises: every call returns a result dict
"""

import httpx
from typing import Dict, Any, Optional
from app.core.config import settings
from app.core.logging import get_logger
from utils.validation_utils import mask_phone_number

logger = get_logger(__name__)

API_BASE_URL = "https://api.twilio.com/2010-04-01"
VERIFY_BASE_URL = "https://verify.twilio.com/v2"

# Twilio error codes mapped to stable identifiers
ERROR_CODE_MAP = {
    60202: "max_attempts",
    60203: "max_send_attempts",
    20404: "not_found",
    60200: "invalid_parameter",
    21211: "invalid_phone",
    21614: "invalid_phone",
}


class TwilioService:
    """Service for sending SMS and verification codes via Twilio"""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        verify_service_sid: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER
        self.verify_service_sid = verify_service_sid or settings.TWILIO_VERIFY_SERVICE_SID
        self.timeout = timeout or settings.TWILIO_TIMEOUT
        self.transport = transport

    @property
    def base_url(self) -> str:
        return f"{API_BASE_URL}/Accounts/{self.account_sid}"

    def is_configured(self) -> bool:
        """Check if Twilio credentials are set"""
        return bool(
            self.account_sid
            and self.auth_token
            and self.account_sid != "your_twilio_sid"
        )

    def is_verify_configured(self) -> bool:
        """Check if the Verify v2 service can be used"""
        return self.is_configured() and bool(self.verify_service_sid)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
            transport=self.transport
        )

    async def _post(self, url: str, data: Dict[str, str]) -> httpx.Response:
        async with self._client() as client:
            return await client.post(url, data=data)

    @staticmethod
    def _error_from_response(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        twilio_code = payload.get("code")
        return {
            "success": False,
            "error": payload.get("message") or f"Twilio API error: {response.status_code}",
            "error_code": ERROR_CODE_MAP.get(twilio_code, "api_error"),
            "twilio_code": twilio_code,
            "status_code": response.status_code
        }

    async def send_sms(self, to_phone: str, body: str) -> Dict[str, Any]:
        """
        Sends an SMS via the Messages API

        Args:
            to_phone: Recipient phone in E.164 (+33612345678)
            body: Message text

        Returns:
            {
                "success": True/False,
                "message_sid": "SMxxx...",
                "error": "Optional error message"
            }
        """
        if not self.is_configured():
            return {"success": False, "error": "Twilio not configured", "error_code": "not_configured"}

        try:
            logger.info(f"📤 Sending SMS to {mask_phone_number(to_phone)}")

            response = await self._post(
                f"{self.base_url}/Messages.json",
                {"From": self.from_number, "To": to_phone, "Body": body}
            )

            if response.status_code in [200, 201]:
                result = response.json()
                logger.info(f"✅ SMS sent: SID={result.get('sid')}")
                return {
                    "success": True,
                    "message_sid": result.get("sid"),
                    "status": result.get("status")
                }

            logger.error(f"❌ Twilio Messages error: {response.status_code} - {response.text}")
            return self._error_from_response(response)

        except httpx.TimeoutException:
            logger.error("Twilio API timeout")
            return {"success": False, "error": "Twilio API timeout", "error_code": "timeout"}
        except httpx.HTTPError as e:
            logger.error(f"Error sending Twilio SMS: {e}", exc_info=True)
            return {"success": False, "error": str(e), "error_code": "transport"}

    async def start_verification(self, to_phone: str, channel: str = "sms") -> Dict[str, Any]:
        """
        Starts a Verify v2 verification; Twilio generates and sends the code.

        Returns:
            {"success": True, "sid": "VExxx", "status": "pending"} or an error dict
        """
        if not self.is_verify_configured():
            return {"success": False, "error": "Twilio Verify not configured", "error_code": "not_configured"}

        try:
            logger.info(f"📤 Starting Twilio verification for {mask_phone_number(to_phone)}")

            response = await self._post(
                f"{VERIFY_BASE_URL}/Services/{self.verify_service_sid}/Verifications",
                {"To": to_phone, "Channel": channel}
            )

            if response.status_code in [200, 201]:
                result = response.json()
                logger.info(f"✅ Verification started: SID={result.get('sid')}")
                return {
                    "success": True,
                    "sid": result.get("sid"),
                    "status": result.get("status")
                }

            logger.error(f"❌ Twilio Verify error: {response.status_code} - {response.text}")
            return self._error_from_response(response)

        except httpx.TimeoutException:
            logger.error("Twilio Verify timeout")
            return {"success": False, "error": "Twilio API timeout", "error_code": "timeout"}
        except httpx.HTTPError as e:
            logger.error(f"Error starting Twilio verification: {e}", exc_info=True)
            return {"success": False, "error": str(e), "error_code": "transport"}

    async def check_verification(self, to_phone: str, code: str) -> Dict[str, Any]:
        """
        Checks a code against the pending Verify v2 verification.

        Returns:
            {"success": True, "approved": bool, "status": "approved"|"pending"} or an error dict
        """
        if not self.is_verify_configured():
            return {"success": False, "error": "Twilio Verify not configured", "error_code": "not_configured"}

        try:
            response = await self._post(
                f"{VERIFY_BASE_URL}/Services/{self.verify_service_sid}/VerificationCheck",
                {"To": to_phone, "Code": code}
            )

            if response.status_code in [200, 201]:
                result = response.json()
                status = result.get("status")
                logger.info(f"Verification check for {mask_phone_number(to_phone)}: {status}")
                return {
                    "success": True,
                    "approved": status == "approved",
                    "status": status
                }

            logger.warning(f"Twilio VerificationCheck error: {response.status_code} - {response.text}")
            return self._error_from_response(response)

        except httpx.TimeoutException:
            logger.error("Twilio Verify timeout")
            return {"success": False, "error": "Twilio API timeout", "error_code": "timeout"}
        except httpx.HTTPError as e:
            logger.error(f"Error checking Twilio verification: {e}", exc_info=True)
            return {"success": False, "error": str(e), "error_code": "transport"}

    async def fetch_account(self) -> Dict[str, Any]:
        """
        Fetches the account resource; used as a connectivity check.
        """
        if not self.is_configured():
            return {"success": False, "error": "Twilio not configured", "error_code": "not_configured"}

        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}.json")

            if response.status_code == 200:
                result = response.json()
                return {
                    "success": True,
                    "account_status": result.get("status"),
                    "friendly_name": result.get("friendly_name")
                }

            return self._error_from_response(response)

        except httpx.HTTPError as e:
            logger.error(f"Twilio connection test failed: {e}")
            return {"success": False, "error": str(e), "error_code": "transport"}


# Singleton instance
twilio_service = TwilioService()
