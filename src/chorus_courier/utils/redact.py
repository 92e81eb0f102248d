# src/chorus_courier/utils/redact.py
"""Redaction helpers for credential-safe log output."""

from __future__ import annotations

from typing import Any

SENSITIVE_KEYS = {
    "access_token",
    "password",
    "enckey",
    "mackey",
    "token",
}

VISIBLE_TOKEN_PREFIX = 6


def redact_token(token: str | None) -> str:
    """Keep a short prefix of a bearer token so log lines stay correlatable."""
    if not token:
        return "<none>"
    if len(token) <= VISIBLE_TOKEN_PREFIX:
        return "[REDACTED]"
    return f"{token[:VISIBLE_TOKEN_PREFIX]}...[REDACTED]"


def redact_mapping(obj: dict[str, Any]) -> dict[str, Any]:
    """Deep redact mapping values for known sensitive keys."""
    redacted: dict[str, Any] = {}
    for key, value in obj.items():
        if str(key).lower() in SENSITIVE_KEYS:
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_mapping(value)
        elif isinstance(value, list):
            redacted[key] = [redact_mapping(item) if isinstance(item, dict) else item for item in value]
        else:
            redacted[key] = value
    return redacted
