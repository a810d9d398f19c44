"""Wire-format helpers for the collector endpoint.

Pure functions: endpoint migration, header construction and the JSON
body. :class:`sessionrelay.relay.RelayClient` strings them together.
"""

from __future__ import annotations

import re
import time
from urllib.parse import urlsplit, urlunsplit

from sessionrelay._constants import CURRENT_ENDPOINT_PATH, LEGACY_ENDPOINT_PATH
from sessionrelay.models.delivery import CollectorPayload

# "<scheme> <credentials>", e.g. "Token abc" or "Basic dXNlcg==".
_PREFIXED_AUTH = re.compile(r"^\s*\w+\s+\S+")
_BEARER_AUTH = re.compile(r"^\s*Bearer\s+", re.IGNORECASE)


def normalize_endpoint(url: str) -> str:
    """Rewrite the legacy collector path to the current one.

    Only a path exactly equal to ``/collect-session`` is touched; scheme,
    host, port, query and fragment are preserved. Anything that does not
    parse as a URL is returned as given (stripped).
    """
    value = url.strip()
    if not value:
        return ""
    try:
        parts = urlsplit(value)
    except ValueError:
        return value
    if not parts.scheme or not parts.netloc:
        return value
    if parts.path != LEGACY_ENDPOINT_PATH:
        return value
    return urlunsplit(parts._replace(path=CURRENT_ENDPOINT_PATH))


def build_auth_header(auth_token: str | None) -> str | None:
    """Return the ``Authorization`` value for *auth_token*, or ``None``.

    A bare token gets ``Bearer`` prepended; a value that already carries a
    scheme is used verbatim.
    """
    token = (auth_token or "").strip()
    if not token:
        return None
    if _PREFIXED_AUTH.match(token) or _BEARER_AUTH.match(token):
        return token
    return f"Bearer {token}"


def build_headers(auth_token: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    authorization = build_auth_header(auth_token)
    if authorization is not None:
        headers["Authorization"] = authorization
    return headers


def build_payload(token: str, *, now_ms: int | None = None) -> CollectorPayload:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return CollectorPayload(value=token, ts=now_ms)
