"""Error message sanitization to prevent credential leakage."""

from __future__ import annotations

import os
import re


def sanitize_error(message: str) -> str:
    """Sanitize error messages to prevent token, secret and path leakage."""
    if not message:
        return message

    sanitized = message
    # Redact bearer tokens and JWT-shaped strings
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)
    sanitized = re.sub(r"eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]*", "[REDACTED_TOKEN]", sanitized)
    sanitized = re.sub(r"(client_secret=)[^&\s]+", r"\1[REDACTED]", sanitized)
    sanitized = re.sub(r"(access_token=)[^&\s]+", r"\1[REDACTED]", sanitized)

    # Redact user home paths
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home not in ("/", "\\"):
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized
