"""
Phone Normalization - E.164 for the SMS Provider
=================================================

Customers are stored as {countryCode, number} where countryCode is either
an ISO region ("GB", "IE", "US") or a calling code ("44", "1").
The SMS provider only accepts E.164 ("+447780587666").
"""

import re
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException


# Calling codes that map to exactly one region we serve.
# "1" (US/Canada) has no entry: the region comes from the area code.
CALLING_CODE_REGIONS = {
    "44": "GB",
    "353": "IE",
}


def _parse_valid(number: str, region: Optional[str] = None) -> Optional[str]:
    try:
        parsed = phonenumbers.parse(number, region)
    except NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def normalize_to_e164(phone_number: Optional[str], country_code: Optional[str] = None) -> Optional[str]:
    """
    Convert a phone number in any local or international format to E.164.

    Args:
        phone_number: Number as typed by the business owner
        country_code: ISO region ("GB") or calling code ("44"), optional

    Returns:
        E.164 string, or None if the number is empty or invalid
    """
    if not phone_number or not phone_number.strip():
        return None

    trimmed = phone_number.strip()

    if trimmed.startswith("+"):
        return _parse_valid(trimmed)

    region = None
    if country_code:
        code = country_code.strip().lstrip("+")
        if code.isdigit() or len(code) > 2:
            region = CALLING_CODE_REGIONS.get(code)
            if not region:
                # Unmapped calling code: build the international form directly
                cleaned = re.sub(r"^0+", "", trimmed)
                return _parse_valid(f"+{code}{cleaned}")
        else:
            region = code.upper()

    return _parse_valid(trimmed, region)


def region_for_e164(e164: str) -> Optional[str]:
    """ISO region of an E.164 number, used for sender and compliance rules."""
    try:
        parsed = phonenumbers.parse(e164, None)
    except NumberParseException:
        return None
    return phonenumbers.region_code_for_number(parsed)
