"""
app/services/sms_verification_service.py

Purpose: Local SMS verification code store

- Generates 6-digit codes and sends them through Twilio Messages
- Enforces expiry, resend cooldown and attempt limits
- Dev mode: no SMS, code logged, fixed test codes accepted
- Records are in-memory and keyed by normalised phone number
"""

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from app.core.config import settings
from app.core.logging import get_logger, LogContext
from app.services.twilio_service import twilio_service
from utils.constants import (
    DEV_TEST_CODES,
    SMS_CODE_MESSAGE,
    INVALID_PHONE_MESSAGE,
    CODE_ALREADY_SENT_MESSAGE,
    CODE_NOT_FOUND_MESSAGE,
    CODE_EXPIRED_MESSAGE,
    CODE_ALREADY_USED_MESSAGE,
    TOO_MANY_ATTEMPTS_MESSAGE,
    WRONG_CODE_MESSAGE,
    CODE_SENT_MESSAGE,
    CODE_VERIFIED_MESSAGE,
    SMS_SEND_FAILED_MESSAGE,
)
from utils.time_utils import utcnow, expires_in, seconds_until
from utils.validation_utils import format_phone_number, normalize_code, mask_phone_number

logger = get_logger(__name__)


@dataclass
class VerificationRecord:
    code: str
    expires_at: datetime
    attempts: int = 0
    verified: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_expired(self) -> bool:
        return utcnow() > self.expires_at


class SmsVerificationService:
    """Issues and checks one-time SMS codes"""

    def __init__(self):
        self._records: Dict[str, VerificationRecord] = {}

    @property
    def dev_mode(self) -> bool:
        return settings.is_development or not twilio_service.is_configured()

    @staticmethod
    def generate_code() -> str:
        return str(100000 + secrets.randbelow(900000))

    async def send_verification_code(self, phone: str) -> Dict[str, Any]:
        """
        Sends a new code to phone unless an unexpired one is pending.

        Returns:
            {"success": True, "message_id": str, "expires_in": 600, "phone_number": "+33..."}
            or {"success": False, "error": str}
        """
        formatted = format_phone_number(phone)
        if not formatted:
            return {"success": False, "error": INVALID_PHONE_MESSAGE, "error_code": "invalid_phone"}

        with LogContext(phone=mask_phone_number(formatted)):
            existing = self._records.get(formatted)
            if existing and not existing.is_expired and not existing.verified:
                wait = seconds_until(existing.expires_at)
                logger.info("Code already pending, refusing resend")
                return {
                    "success": False,
                    "error": CODE_ALREADY_SENT_MESSAGE.format(seconds=wait),
                    "error_code": "code_pending",
                    "retry_after": wait
                }

            code = self.generate_code()
            ttl_minutes = settings.SMS_CODE_TTL_MINUTES
            self._records[formatted] = VerificationRecord(
                code=code,
                expires_at=expires_in(minutes=ttl_minutes)
            )

            if self.dev_mode:
                logger.info(f"🔧 Dev mode - verification code for {mask_phone_number(formatted)}: {code}")
                message_id = f"dev-msg-{int(time.time() * 1000)}"
            else:
                result = await twilio_service.send_sms(formatted, SMS_CODE_MESSAGE.format(code=code))
                if not result["success"]:
                    self._records.pop(formatted, None)
                    logger.error(f"❌ Verification SMS failed: {result.get('error')}")
                    error_code = result.get("error_code")
                    return {
                        "success": False,
                        "error": INVALID_PHONE_MESSAGE if error_code == "invalid_phone" else SMS_SEND_FAILED_MESSAGE,
                        "error_code": error_code or "send_failed"
                    }
                message_id = result["message_sid"]

            logger.info("✅ Verification code issued")
            return {
                "success": True,
                "message": CODE_SENT_MESSAGE,
                "message_id": message_id,
                "expires_in": ttl_minutes * 60,
                "phone_number": formatted
            }

    async def verify_code(self, phone: str, code: str) -> Dict[str, Any]:
        """
        Checks a submitted code.

        Returns:
            {"success": True, "message": str} or
            {"success": False, "error": str, "attempts_remaining": int (wrong code only)}
        """
        formatted = format_phone_number(phone)
        if not formatted:
            return {"success": False, "error": INVALID_PHONE_MESSAGE, "error_code": "invalid_phone"}

        code = normalize_code(code)

        with LogContext(phone=mask_phone_number(formatted)):
            if self.dev_mode and code in DEV_TEST_CODES:
                record = self._records.get(formatted)
                if record is None:
                    record = VerificationRecord(
                        code=code,
                        expires_at=expires_in(minutes=settings.SMS_CODE_TTL_MINUTES)
                    )
                    self._records[formatted] = record
                record.verified = True
                logger.info("🔧 Dev mode - test code accepted")
                return {"success": True, "message": CODE_VERIFIED_MESSAGE}

            record = self._records.get(formatted)
            if record is None:
                return {"success": False, "error": CODE_NOT_FOUND_MESSAGE, "error_code": "not_found"}

            if record.is_expired:
                del self._records[formatted]
                return {"success": False, "error": CODE_EXPIRED_MESSAGE, "error_code": "expired"}

            if record.verified:
                return {"success": False, "error": CODE_ALREADY_USED_MESSAGE, "error_code": "already_used"}

            record.attempts += 1
            max_attempts = settings.SMS_MAX_ATTEMPTS

            if record.attempts > max_attempts:
                del self._records[formatted]
                logger.warning("Too many verification attempts, code discarded")
                return {"success": False, "error": TOO_MANY_ATTEMPTS_MESSAGE, "error_code": "max_attempts"}

            if not secrets.compare_digest(record.code, code):
                remaining = max_attempts - record.attempts
                return {
                    "success": False,
                    "error": WRONG_CODE_MESSAGE.format(remaining=remaining),
                    "error_code": "wrong_code",
                    "attempts_remaining": remaining
                }

            record.verified = True
            logger.info("✅ Phone number verified")
            return {"success": True, "message": CODE_VERIFIED_MESSAGE}

    def is_phone_verified(self, phone: str) -> bool:
        formatted = format_phone_number(phone)
        record = self._records.get(formatted) if formatted else None
        return bool(record and record.verified and not record.is_expired)

    def clear_verification(self, phone: str):
        formatted = format_phone_number(phone)
        if formatted:
            self._records.pop(formatted, None)

    def has_pending_code(self, phone: str) -> bool:
        formatted = format_phone_number(phone)
        record = self._records.get(formatted) if formatted else None
        return bool(record and not record.verified and not record.is_expired)

    def get_verification_status(self, phone: str) -> Dict[str, Any]:
        formatted = format_phone_number(phone)
        record = self._records.get(formatted) if formatted else None

        if record is None:
            return {"exists": False, "is_verified": False, "expires_at": None, "attempts_used": 0}

        return {
            "exists": True,
            "is_verified": record.verified,
            "expires_at": record.expires_at,
            "attempts_used": record.attempts
        }

    def cleanup_expired_codes(self) -> int:
        """
        Drops expired records. Called periodically by the scheduler.

        Returns:
            Number of records removed
        """
        expired = [phone for phone, record in self._records.items() if record.is_expired]
        for phone in expired:
            del self._records[phone]

        if expired:
            logger.info(f"🧹 Removed {len(expired)} expired verification code(s)")
        return len(expired)

    async def test_connection(self) -> Dict[str, Any]:
        if self.dev_mode:
            return {
                "success": True,
                "mode": "development",
                "message": "Mode développement - les SMS ne sont pas envoyés"
            }

        result = await twilio_service.fetch_account()
        return {
            "success": result["success"],
            "mode": "production",
            "account_status": result.get("account_status"),
            "error": result.get("error")
        }

    def get_debug_info(self) -> Optional[Dict[str, Any]]:
        """
        Active records including their codes. Development only.
        """
        if not settings.is_development:
            return None

        return {
            "mode": "development" if self.dev_mode else "production",
            "test_codes": list(DEV_TEST_CODES),
            "active_codes": [
                {
                    "phone_number": phone,
                    "code": record.code,
                    "expires_at": record.expires_at,
                    "attempts": record.attempts,
                    "verified": record.verified
                }
                for phone, record in self._records.items()
                if not record.is_expired
            ]
        }

    def reset(self):
        self._records.clear()


# Singleton instance
sms_verification_service = SmsVerificationService()
