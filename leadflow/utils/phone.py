"""
Phone number normalization.

Two different jobs live here:
- phone_match_key: the canonical suffix used to match telephony provider numbers
  against CRM rows. Providers send "919876543210", "+91 98765 43210" or
  "09876543210" for the same subscriber, so only the last 10 digits are compared.
- format_e164: canonical storage format for phones entered on intake, using the
  phonenumbers library.
"""
import logging
import re
from typing import Optional

import phonenumbers

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")

MATCH_KEY_DIGITS = 10


def digits_only(phone: Optional[str]) -> str:
    """Strip everything that is not a digit. None becomes an empty string."""
    if not phone:
        return ""
    return _NON_DIGITS.sub("", str(phone))


def phone_match_key(phone: Optional[str], digits: int = MATCH_KEY_DIGITS) -> str:
    """
    Canonical suffix for cross-system matching.

    - "+91 98765-43210" → "9876543210"
    - "09876543210"     → "9876543210"
    - "12345"           → "12345"   (fewer than 10 digits: returned as-is)
    - None / "abc"      → ""

    Never raises.
    """
    stripped = digits_only(phone)
    if len(stripped) < digits:
        return stripped
    return stripped[-digits:]


def format_e164(phone: Optional[str], default_region: str = "IN") -> Optional[str]:
    """
    Normalize a phone number to E.164 format.

    Handles:
    - 98765 43210     → +919876543210  (default_region="IN")
    - +1 512-555-1234 → +15125551234
    - 0091 9876543210 → +919876543210

    Returns None if the number cannot be parsed or is not a possible number.
    """
    if not phone or not phone.strip():
        return None

    try:
        parsed = phonenumbers.parse(phone.strip(), default_region)
    except phonenumbers.NumberParseException:
        return None

    # Possible numbers pass as well as assigned ranges
    if not phonenumbers.is_valid_number(parsed) and not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def mask_phone(phone: Optional[str]) -> str:
    """Mask a phone number for log output: keep the first 6 characters."""
    if not phone:
        return "unknown"
    return phone[:6] + "***"
