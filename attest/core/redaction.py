from __future__ import annotations

import re
from typing import Any


_PATTERNS = [
    (re.compile(r"(Authorization\s*:\s*Bearer\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(AccountKey=)[^;\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(SharedAccessKey=)[^;\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"([?&]sig=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(client_secret\s*[:=])\s*[^\s&]+", re.IGNORECASE), r"\1 [REDACTED]"),
    (re.compile(r"(password\s*[:=])\s*[^\s;]+", re.IGNORECASE), r"\1 [REDACTED]"),
]

_SENSITIVE_KEYS = {"password", "secret", "client_secret", "connection_string", "access_key", "sas_token"}


def redact_text(value: str) -> str:
    """Redact credential patterns (bearer tokens, storage keys, SAS signatures) from text."""
    redacted = value
    for pattern, repl in _PATTERNS:
        redacted = pattern.sub(repl, redacted)
    return redacted


def redact_data(value: Any) -> Any:
    """Recursively redact structured evidence.

    Notes:
        Values under well-known secret keys are replaced outright; other
        strings go through the text patterns.
    """
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, (list, tuple)):
        return [redact_data(item) for item in value]
    if isinstance(value, dict):
        return {
            key: "[REDACTED]" if str(key).lower() in _SENSITIVE_KEYS else redact_data(val)
            for key, val in value.items()
        }
    return value
