from __future__ import annotations

import re
from typing import Any


_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])([A-Za-z0-9._%+-]*)(@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_PHONE_RE = re.compile(r"\+\d{6,15}")

_SENSITIVE_KEY_MARKERS = (
    "token",
    "authorization",
    "secret",
    "signature",
    "api_key",
)

# contact fields masked rather than dropped
_CONTACT_KEYS = ("email", "phone", "contact_name", "name")


def _mask_email(match: re.Match) -> str:
    return f"{match.group(1)}***{match.group(3)}"


def mask_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value or "")
    if len(digits) <= 4:
        return "****"
    return f"****{digits[-4:]}"


def mask_name(value: str) -> str:
    parts = (value or "").split()
    return " ".join(p[0] + "." for p in parts if p)


def redact_text(value: str) -> str:
    if not value:
        return value
    masked = _EMAIL_RE.sub(_mask_email, value)
    masked = _PHONE_RE.sub(lambda m: mask_phone(m.group(0)), masked)

    if "bearer" in masked.lower():
        return "[REDACTED]"
    return masked


def redact_contact(contact: Any) -> dict[str, Any]:
    """Log-safe view of a CustomerContact (or any object with name/email/phone)."""
    return {
        "name": mask_name(getattr(contact, "name", "") or ""),
        "email": redact_text(getattr(contact, "email", "") or ""),
        "phone": mask_phone(contact.phone) if getattr(contact, "phone", None) else None,
    }


def _mask_contact_field(key: str, value: str) -> str:
    if key == "email":
        return redact_text(value)
    if key == "phone":
        return mask_phone(value)
    return mask_name(value)


def _is_sensitive_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _SENSITIVE_KEY_MARKERS)


def redact_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return redact_dict(value)
    if isinstance(value, list):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in payload.items():
        if _is_sensitive_key(k):
            out[k] = "[REDACTED]"
        elif k in _CONTACT_KEYS and isinstance(v, str):
            out[k] = _mask_contact_field(k, v)
        else:
            out[k] = redact_value(v)
    return out
