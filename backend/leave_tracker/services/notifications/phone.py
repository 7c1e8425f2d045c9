"""Indonesian phone number helpers.

Numbers are accepted as 08..., 8..., 62... or +62..., stored in E.164
(+62...) and displayed in the local 08xx-xxxx-xxxx form.
"""

import re

_PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-()]{8,15}$")
_INDONESIAN_PREFIX = re.compile(r"^(\+?62|08|8)")
_VALID_MOBILE = re.compile(r"^\+628[0-9]{8,11}$")


def is_phone_number(value: str) -> bool:
    """Tell a phone number apart from an email address in a login field."""
    value = value.strip()
    if "@" in value:
        return False
    return bool(_PHONE_PATTERN.match(value) and _INDONESIAN_PREFIX.match(value))


def normalize_phone_number(value: str) -> str:
    """Normalize to E.164: 081234567890 -> +6281234567890."""
    cleaned = re.sub(r"[^\d+]", "", value)
    if cleaned.startswith("08"):
        return "+62" + cleaned[1:]
    if cleaned.startswith("8"):
        return "+62" + cleaned
    if cleaned.startswith("62"):
        return "+" + cleaned
    if not cleaned.startswith("+"):
        return "+62" + cleaned
    return cleaned


def format_phone_for_display(phone_e164: str) -> str:
    """+6281234567890 -> 0812-3456-7890. Non-Indonesian numbers are returned as-is."""
    if not phone_e164.startswith("+62"):
        return phone_e164
    local = "0" + phone_e164[3:]
    if len(local) >= 11:
        return f"{local[:4]}-{local[4:8]}-{local[8:]}"
    return local


def is_valid_indonesian_phone(value: str) -> bool:
    return bool(_VALID_MOBILE.match(normalize_phone_number(value)))


def phone_for_whatsapp(phone_e164: str) -> str:
    """wa.me links take the number without the leading +."""
    return phone_e164.replace("+", "", 1)
