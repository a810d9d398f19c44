"""Helpers for safe debug logging.

sessionrelay exists to move a live session credential around, so nothing
it logs may contain that credential or the collector's auth token in clear.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "value",
        "token",
        "sessionid",
        "cached_token",
        "last_delivered_token",
        "relay_auth_token",
        "auth_token",
        "authorization",
        "cookie",
    }
)


def mask_token(token: str | None, *, visible: int = 4) -> str:
    """Return a short, non-reversible label for *token* usable in logs."""
    if not token:
        return "<none>"
    if len(token) <= visible * 2:
        return f"<{len(token)} chars>"
    return f"{token[:visible]}…<{len(token)} chars>"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
