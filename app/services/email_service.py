"""
app/services/email_service.py

Purpose: SMTP email sending

- Sends multipart (text + HTML) emails over SMTP
- Renders {{variable}} placeholders in stored templates
- Builds the email history entry for every templated send
- Never raises on delivery problems: returns a result dict
"""

import asyncio
import re
import smtplib
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Dict, Any, Iterator, Optional

from app.core.config import settings
from app.core.logging import get_logger
from utils.constants import SMTP_NOT_CONFIGURED_MESSAGE
from utils.time_utils import utcnow

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_text(content: Optional[str], variables: Dict[str, Any]) -> Optional[str]:
    """Replaces {{key}} with variables[key]; unknown placeholders are left as-is."""
    if content is None:
        return None

    def replace(match):
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace, content)


def render_template(template: Dict[str, Any], variables: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Renders subject, HTML and text bodies of a stored template.

    Returns:
        {"subject": str, "html_content": str, "text_content": str | None}
    """
    return {
        "subject": render_text(template.get("subject", ""), variables),
        "html_content": render_text(template.get("html_content", ""), variables),
        "text_content": render_text(template.get("text_content"), variables),
    }


def html_to_text(html: str) -> str:
    text = re.sub(r"<(br|/p|/div|/h\d|/li)[^>]*>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class EmailService:
    """Service for sending emails via SMTP"""

    def __init__(self):
        self.host = settings.EMAIL_HOST
        self.port = settings.EMAIL_PORT
        self.user = settings.EMAIL_USER
        self.password = settings.EMAIL_PASS
        self.timeout = settings.EMAIL_TIMEOUT

    @property
    def use_ssl(self) -> bool:
        return self.port == 465

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def default_sender(self, category: Optional[str] = None) -> Dict[str, str]:
        """
        Admin notifications leave from the contact address, everything else from no-reply.
        """
        if category and category.startswith("admin_notification"):
            return {"email": settings.ADMIN_EMAIL, "name": settings.EMAIL_FROM_NAME}
        return {"email": settings.EMAIL_FROM, "name": settings.EMAIL_FROM_NAME}

    @contextmanager
    def _connection(self) -> Iterator[smtplib.SMTP]:
        """Authenticated SMTP session, closed on exit even if login fails."""
        smtp_class = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_class(self.host, self.port, timeout=self.timeout) as server:
            if not self.use_ssl:
                server.starttls()
            server.login(self.user, self.password)
            yield server

    def _deliver(self, msg: MIMEMultipart, from_email: str, to_email: str):
        """Blocking SMTP delivery; run in a worker thread."""
        with self._connection() as server:
            server.sendmail(from_email, [to_email], msg.as_string())

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        to_name: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Sends one email.

        Returns:
            {"success": True, "message_id": str} or {"success": False, "error": str}
        """
        if not self.is_configured():
            logger.error("❌ SMTP credentials missing, email not sent")
            return {"success": False, "error": SMTP_NOT_CONFIGURED_MESSAGE}

        sender = self.default_sender()
        from_email = from_email or sender["email"]
        from_name = from_name or sender["name"]

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((from_name, from_email))
        msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
        msg["Message-ID"] = make_msgid(domain=from_email.split("@")[-1])
        msg.attach(MIMEText(text_content or html_to_text(html_content), "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            await asyncio.to_thread(self._deliver, msg, from_email, to_email)
            logger.info(f"📧 Email sent to {to_email}: {subject}")
            return {"success": True, "message_id": msg["Message-ID"]}

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"❌ SMTP authentication failed: {e}")
            return {"success": False, "error": "SMTP authentication failed"}
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ Error sending email to {to_email}: {e}")
            return {"success": False, "error": str(e)}

    async def send_templated_email(
        self,
        template: Dict[str, Any],
        variables: Dict[str, Any],
        to_email: str,
        to_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Renders and sends a stored template.

        Returns:
            {"success": bool, "error": str | None, "email_history": dict}
        """
        rendered = render_template(template, variables)
        sender = self.default_sender(template.get("category"))

        result = await self.send_email(
            to_email=to_email,
            subject=rendered["subject"],
            html_content=rendered["html_content"],
            text_content=rendered["text_content"],
            to_name=to_name,
            from_email=sender["email"],
            from_name=sender["name"]
        )

        email_history = {
            "template_id": template.get("id"),
            "recipient_email": to_email,
            "recipient_name": to_name,
            "sender_email": sender["email"],
            "subject": rendered["subject"],
            "html_content": rendered["html_content"],
            "text_content": rendered["text_content"],
            "status": "sent" if result["success"] else "failed",
            "error_message": result.get("error"),
            "sent_at": utcnow() if result["success"] else None
        }

        return {
            "success": result["success"],
            "error": result.get("error"),
            "email_history": email_history
        }

    def _check_connection(self):
        with self._connection() as server:
            server.noop()

    async def verify_connection(self) -> Dict[str, Any]:
        """Opens and authenticates an SMTP session without sending anything."""
        if not self.is_configured():
            return {"success": False, "error": SMTP_NOT_CONFIGURED_MESSAGE}

        try:
            await asyncio.to_thread(self._check_connection)
            logger.info("✅ SMTP connection verified")
            return {"success": True}
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP connection failed: {e}")
            return {"success": False, "error": str(e)}

    async def send_test_email(self, to_email: str) -> Dict[str, Any]:
        return await self.send_email(
            to_email=to_email,
            subject="Test de configuration email - Estimation Gironde",
            html_content=(
                "<h2>Configuration email fonctionnelle</h2>"
                f"<p>Envoyé le {utcnow().strftime('%d/%m/%Y %H:%M')} UTC depuis {self.host}:{self.port}.</p>"
            )
        )


# Singleton instance
email_service = EmailService()
