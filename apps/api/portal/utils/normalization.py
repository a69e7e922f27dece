"""Data normalization utilities for consistent data quality."""

import re
from typing import Optional


PHONE_DIGITS = 10


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to its last 10 digits.

    Accepts any punctuation or country prefix:
    - 9876543210 → 9876543210
    - +91 98765-43210 → 9876543210
    - 091 9876543210 → 9876543210

    Returns:
        The 10-digit national number, or None if fewer than 10 digits remain
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", str(phone))
    if len(digits) < PHONE_DIGITS:
        return None
    return digits[-PHONE_DIGITS:]


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Mask a phone for logs (keep the last 4 digits)."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", str(phone))
    if len(digits) <= 4:
        return "****"
    return f"{'*' * (len(digits) - 4)}{digits[-4:]}"


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lowercase and trim an email address."""
    if not email:
        return None
    cleaned = email.strip().lower()
    return cleaned or None
