from __future__ import annotations

import re
from typing import Any, Mapping

REDACTED = "[REDACTED]"

_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*(@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")

# Any string carrying one of these is dropped whole.
_SECRET_MARKERS = ("bearer ", "access_token", "sk_live_", "sk_test_", "whsec_")

# Header and payload keys whose values never reach a log line.
_SECRET_KEYS = ("authorization", "cookie", "secret", "password", "token", "signature", "transmission-sig")

# PayPal payloads carry HATEOAS links and bank details that are noise or PII in logs.
_DROPPED_KEYS = frozenset({"links", "account_number", "routing_number", "iban"})


def redact_text(value: str) -> str:
    """Mask emails as `j***@example.com`; drop the whole string if it looks like a credential."""
    text = value or ""
    lowered = text.lower()
    if any(marker in lowered for marker in _SECRET_MARKERS):
        return REDACTED
    return _EMAIL_RE.sub(lambda m: f"{m.group(1)}***{m.group(2)}", text)


def _key_is_secret(key: str) -> bool:
    key_l = key.lower()
    return any(marker in key_l for marker in _SECRET_KEYS)


def redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, Mapping):
        return redact_dict(value)
    if isinstance(value, (list, tuple)):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in payload.items():
        name = str(key)
        if name.lower() in _DROPPED_KEYS:
            continue
        out[name] = REDACTED if _key_is_secret(name) else redact_value(value)
    return out
