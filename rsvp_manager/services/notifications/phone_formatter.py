"""
E.164 phone number formatting

Twilio only accepts +<country code><number>. Guests type numbers in local
formats ("058-400-3578", "0584003578", "+972 58 400 3578"), so everything
that reaches Twilio goes through format_to_e164 first.
"""

import re
from typing import List, Optional

COUNTRY_CODES = {
    "IL": {"code": "972", "local_prefix": "0"},
    "US": {"code": "1", "local_prefix": "1"},
    "UK": {"code": "44", "local_prefix": "0"},
}

DEFAULT_COUNTRY = "IL"

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")

def _clean(phone: str) -> str:
    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)
    return f"+{digits}" if has_plus else digits

def is_valid_e164(phone: str) -> bool:
    return bool(phone) and bool(_E164_RE.match(phone))

def format_to_e164(phone: Optional[str], country: str = DEFAULT_COUNTRY) -> str:
    """Best-effort conversion of a local or international number to E.164"""
    if not phone:
        return ""

    cleaned = _clean(phone)
    if is_valid_e164(cleaned):
        return cleaned

    config = COUNTRY_CODES.get(country, COUNTRY_CODES[DEFAULT_COUNTRY])

    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    if cleaned.startswith(config["code"]):
        return f"+{cleaned}"

    if config["local_prefix"] == "0" and cleaned.startswith("0"):
        return f"+{config['code']}{cleaned[1:]}"

    if country == "IL" and len(cleaned) == 9 and cleaned.startswith("5"):
        return f"+972{cleaned}"

    if country == "US":
        if len(cleaned) == 10:
            return f"+1{cleaned}"
        if len(cleaned) == 11 and cleaned.startswith("1"):
            return f"+{cleaned}"

    if 7 <= len(cleaned) <= 15:
        candidate = f"+{config['code']}{cleaned}"
        if is_valid_e164(candidate):
            return candidate

    return f"+{cleaned}"

def get_country_from_e164(phone: str) -> Optional[str]:
    if not is_valid_e164(phone):
        return None
    number = phone[1:]
    if number.startswith("972"):
        return "IL"
    if number.startswith("44"):
        return "UK"
    if number.startswith("1"):
        return "US"
    return None

def format_for_display(phone: str) -> str:
    """Human readable spacing for IL and US numbers, E.164 otherwise"""
    e164 = format_to_e164(phone)
    if not e164:
        return phone

    country = get_country_from_e164(e164)
    if country == "IL":
        match = re.match(r"^\+972(\d{2})(\d{3})(\d{4})$", e164)
        if match:
            return f"+972 {match.group(1)} {match.group(2)} {match.group(3)}"
    if country == "US":
        match = re.match(r"^\+1(\d{3})(\d{3})(\d{4})$", e164)
        if match:
            return f"+1 ({match.group(1)}) {match.group(2)}-{match.group(3)}"
    return e164

def phone_variations(phone: str, country: str = DEFAULT_COUNTRY) -> List[str]:
    """Stored formats a guest's number may have been saved in"""
    e164 = format_to_e164(phone, country)
    if not e164:
        return []

    variations = {e164, e164[1:]}
    code = COUNTRY_CODES.get(country, COUNTRY_CODES[DEFAULT_COUNTRY])["code"]
    if e164.startswith(f"+{code}"):
        local = "0" + e164[len(code) + 1:]
        variations.add(local)
        if country == "IL" and len(local) == 10:
            variations.add(f"{local[:3]}-{local[3:6]}-{local[6:]}")
            variations.add(f"{local[:3]}-{local[3:]}")
    return sorted(variations)
