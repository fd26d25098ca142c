"""
utils/validation_utils.py

Purpose: Input validation helpers

- Phone number normalisation (French and international)
- Verification code format checks
- Masking helpers for logs and API responses
"""

import re
from typing import Optional


def format_phone_number(phone: str) -> Optional[str]:
    """
    Normalises a phone number to E.164.

    Accepts:
    - French mobiles: "06 12 34 56 78", "07.12.34.56.78"
    - Numbers already carrying the French prefix: "33612345678", "+33 6 12 34 56 78"
    - Other international numbers with 10 to 15 digits

    Args:
        phone: Raw phone number

    Returns:
        "+<digits>" or None if the number cannot be interpreted
    """
    if not phone:
        return None

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("33") and len(digits) == 11:
        return f"+{digits}"

    if (digits.startswith("06") or digits.startswith("07")) and len(digits) == 10:
        return f"+33{digits[1:]}"

    if 10 <= len(digits) <= 15:
        return f"+{digits}"

    return None


def normalize_code(code: str) -> str:
    """Removes whitespace from a submitted verification code."""
    if not code:
        return ""
    return re.sub(r"\s", "", code)


def is_valid_verification_code(code: str) -> bool:
    """
    Validates verification code format (exactly 6 digits).
    """
    return bool(re.match(r"^\d{6}$", normalize_code(code)))


def mask_phone_number(phone: str) -> str:
    """
    Masks every digit except the last four.

    "+33612345678" -> "+*******5678"
    """
    if not phone:
        return ""
    return re.sub(r"\d(?=\d{4})", "*", phone)


def mask_email(email: str) -> str:
    """Masks the local part of an email address for logs."""
    if not email or "@" not in email:
        return email or ""
    local, domain = email.split("@", 1)
    if len(local) <= 2:
        return f"{local[0]}*@{domain}"
    return f"{local[0]}{'*' * (len(local) - 2)}{local[-1]}@{domain}"
