# solarcrm/utils/phone.py
import re
from typing import Optional

import phonenumbers

from solarcrm.config import settings

_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D+")
_CUSTOMER_MOBILE = re.compile(r"^\d{8,15}$")
_PARTNER_MOBILE = re.compile(r"^\d{10}$")


class InvalidPhone(ValueError):
    pass


def normalize_customer_mobile(raw: str) -> str:
    """
    Customer login key: whitespace stripped, 8-15 digits, nothing else.
    """
    normalized = _WHITESPACE.sub("", raw or "")
    if not _CUSTOMER_MOBILE.match(normalized):
        raise InvalidPhone("invalid mobile format")
    return normalized


def normalize_partner_mobile(raw: str) -> str:
    """
    Partners type a bare 10-digit national number; we key them by E.164
    with the fixed country code (+91XXXXXXXXXX).
    """
    raw = (raw or "").strip()
    if not _PARTNER_MOBILE.match(raw):
        raise InvalidPhone("A valid 10-digit mobile number is required")
    country_code = phonenumbers.country_code_for_region(settings.PARTNER_REGION)
    return f"+{country_code}{raw}"


def digits_for_association(raw: Optional[str]) -> Optional[str]:
    """
    Loose match used by public lead submission: digits only, 8-15 long,
    else None (never raises).
    """
    if not raw or not isinstance(raw, str):
        return None
    digits = _NON_DIGITS.sub("", raw)
    if 8 <= len(digits) <= 15:
        return digits
    return None


def to_e164(raw: str, region: Optional[str] = None) -> Optional[str]:
    """
    Best-effort E.164 for SMS delivery; None if the number cannot be parsed.
    """
    try:
        pn = phonenumbers.parse(raw, region or settings.PARTNER_REGION)
        if not phonenumbers.is_possible_number(pn):
            return None
        return phonenumbers.format_number(pn, phonenumbers.PhoneNumberFormat.E164)
    except phonenumbers.NumberParseException:
        return None
