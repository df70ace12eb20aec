"""Redaction module to mask cookie values in outputs and logs."""
import re
from typing import Any, Dict

REDACTED = "[REDACTED]"
SECRET_KEYS = ("identitycookie", "cookietouse", "canonical_cookie_header", "cookie", "session_cookie")


def redact_string(text: str) -> str:
    """Redact Bandcamp cookie values from a string."""
    if not text:
        return text

    # Patterns to redact
    patterns = [
        (r'\b(identity)=([^;\r\n]+)', r'\1=' + REDACTED),
        (r'\b(session)=([^;\s]+)', r'\1=' + REDACTED),
        (r'\b(js_logged_in|client_id|BACKENDID\d*)=([^;\s]+)', r'\1=' + REDACTED),
    ]

    result = text
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    return result


def redact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact cookie values from a dictionary."""
    if not isinstance(data, dict):
        return data

    redacted = {}
    for key, value in data.items():
        if isinstance(key, str) and key.lower() in SECRET_KEYS:
            redacted[key] = REDACTED
        else:
            redacted[key] = redact_json(value)
    return redacted


def redact_json(data: Any) -> Any:
    """Redact cookie values from JSON-serializable data."""
    if isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, list):
        return [redact_json(item) for item in data]
    elif isinstance(data, str):
        return redact_string(data)
    else:
        return data
