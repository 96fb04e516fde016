"""HTTP helpers shared by the API clients.

Requests are never retried; a failed call surfaces immediately.
"""

from __future__ import annotations

from typing import Any

import httpx


def error_message(response: httpx.Response) -> str:
    """Best summary of an error response: its message field or raw text."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("message", "error_description", "msg", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    return text or response.reason_phrase or f"HTTP {response.status_code}"


def unwrap_data(response: httpx.Response) -> Any:
    """Return ``payload["data"]`` for enveloped responses, else the payload."""
    if not response.content:
        return None
    payload = response.json()
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


__all__ = ["error_message", "unwrap_data"]
