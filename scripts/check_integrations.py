"""
Twilio and SMTP integration check

Verifies credentials and, on request, sends a real SMS and a test email.

Usage: python scripts/check_integrations.py
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from app.core.config import settings
from app.services.email_service import email_service
from app.services.twilio_service import twilio_service
from utils.constants import SMS_CODE_MESSAGE
from utils.validation_utils import format_phone_number


async def check_twilio() -> bool:
    print("=" * 60)
    print("  Twilio")
    print("=" * 60 + "\n")

    print(f"Account SID: {settings.TWILIO_ACCOUNT_SID[:10]}..." if settings.TWILIO_ACCOUNT_SID else "Account SID: ❌ Not set")
    print(f"Auth Token: {'✅ Set' if settings.TWILIO_AUTH_TOKEN else '❌ Not set'}")
    print(f"Sender: {settings.TWILIO_PHONE_NUMBER}")
    print(f"Verify service: {settings.TWILIO_VERIFY_SERVICE_SID or '❌ Not set (local codes)'}")

    if not twilio_service.is_configured():
        print("\n⚠️  Set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN in .env")
        return False

    result = await twilio_service.fetch_account()
    if not result["success"]:
        print(f"\n❌ Account check failed: {result.get('error')}")
        return False

    print(f"\n✅ Account {result.get('friendly_name')} ({result.get('account_status')})")
    return True


async def send_test_sms():
    phone = format_phone_number(input("Phone number to text (06..., +336...): ").strip())
    if not phone:
        print("❌ Invalid French mobile number")
        return

    result = await twilio_service.send_sms(phone, SMS_CODE_MESSAGE.format(code="123456"))
    if result["success"]:
        print(f"✅ SMS sent, SID={result.get('message_sid')}")
    else:
        print(f"❌ SMS failed: {result.get('error')}")


async def check_smtp() -> bool:
    print("\n" + "=" * 60)
    print("  SMTP")
    print("=" * 60 + "\n")

    print(f"Host: {settings.EMAIL_HOST}:{settings.EMAIL_PORT}")
    print(f"User: {settings.EMAIL_USER or '❌ Not set'}")

    result = await email_service.verify_connection()
    if not result["success"]:
        print(f"\n❌ SMTP check failed: {result.get('error')}")
        return False

    print("\n✅ SMTP login succeeded")
    return True


async def main():
    print("\n🧪 Gironde Leads integration check\n")

    if await check_twilio():
        if input("\nSend a test SMS? (y/n): ").lower() == "y":
            await send_test_sms()

    if await check_smtp():
        if input("\nSend a test email? (y/n): ").lower() == "y":
            result = await email_service.send_test_email(input("Recipient: ").strip())
            print("✅ Email sent" if result["success"] else f"❌ Email failed: {result.get('error')}")

    print("\n" + "=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
