"""HTTP transport for collector deliveries."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from sessionrelay._redact import redact_for_log
from sessionrelay.exceptions import RelayTransportError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Status and body text of a collector reply."""

    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """Structural transport interface used by :class:`~sessionrelay.relay.RelayClient`.

    Test doubles implement this directly; production code uses
    :class:`HttpTransport`.
    """

    async def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str],
        timeout: float,
        verify_tls: bool = True,
    ) -> TransportResponse:
        ...


class HttpTransport:
    """aiohttp-backed transport.

    Network errors and timeouts surface as :class:`RelayTransportError`;
    HTTP error statuses are returned to the caller untouched.
    """

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    async def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str],
        timeout: float,
        verify_tls: bool = True,
    ) -> TransportResponse:
        data = json.dumps(dict(body), separators=(",", ":"))
        _logger.debug("POST %s headers=%s body=%s", url, redact_for_log(dict(headers)), redact_for_log(dict(body)))

        request_kwargs: dict[str, Any] = {
            "data": data,
            "headers": dict(headers),
            "timeout": aiohttp.ClientTimeout(total=timeout),
        }
        if not verify_tls:
            request_kwargs["ssl"] = False

        try:
            async with self._http.post(url, **request_kwargs) as resp:
                try:
                    text = await resp.text()
                except (aiohttp.ClientError, UnicodeDecodeError):
                    # Body is diagnostics only; the status already decides.
                    text = ""
                return TransportResponse(status=resp.status, text=text)
        except aiohttp.ClientError as exc:
            raise RelayTransportError(f"POST to {url} failed: {exc}", endpoint=url) from exc
        except TimeoutError as exc:
            raise RelayTransportError(f"POST to {url} timed out after {timeout:g}s", endpoint=url) from exc
