"""Network delivery of the session token to the collector."""

from __future__ import annotations

import logging

from sessionrelay._api.collector import build_headers, build_payload, normalize_endpoint
from sessionrelay._constants import (
    KEY_LAST_DELIVERED_AT,
    KEY_LAST_DELIVERED_TOKEN,
    KEY_RELAY_AUTH_TOKEN,
    KEY_RELAY_ENDPOINT,
    KEY_RELAY_INSECURE,
)
from sessionrelay._redact import mask_token
from sessionrelay._transport import Transport
from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import ConfigStore
from sessionrelay.exceptions import DeliveryRejectedError, EmptyTokenError
from sessionrelay.models.delivery import DeliveryRecord, RelayConfig
from sessionrelay.state.store import RelayState

_logger = logging.getLogger(__name__)

RELAY_SETTING_KEYS: tuple[str, ...] = (KEY_RELAY_ENDPOINT, KEY_RELAY_AUTH_TOKEN, KEY_RELAY_INSECURE)


class RelayClient:
    """POST a token to the configured collector.

    The client is unguarded: it neither deduplicates nor serializes.
    :class:`~sessionrelay.guard.SendGuard` decides when it runs and what
    happens to its errors.
    """

    def __init__(
        self,
        config: SessionRelayConfig,
        state: RelayState,
        store: ConfigStore,
        transport: Transport,
    ) -> None:
        self._config = config
        self._state = state
        self._store = store
        self._transport = transport

    async def read_relay_config(self) -> RelayConfig:
        """Read collector settings fresh, applying endpoint migration and default.

        Corrected or defaulted endpoints are written back best-effort.
        """
        items = await self._store.get_many(RELAY_SETTING_KEYS)
        stored_endpoint = items.get(KEY_RELAY_ENDPOINT) or ""
        endpoint = normalize_endpoint(str(stored_endpoint))
        if not endpoint:
            endpoint = self._config.default_endpoint
            _logger.info("No collector endpoint configured, using default %s", endpoint)

        if endpoint != stored_endpoint:
            await self._persist({KEY_RELAY_ENDPOINT: endpoint}, what="collector endpoint")

        return RelayConfig(
            endpoint=endpoint,
            auth_token=items.get(KEY_RELAY_AUTH_TOKEN),
            insecure=items.get(KEY_RELAY_INSECURE, False),
        )

    async def deliver(self, token: str) -> DeliveryRecord:
        """Send *token* and record the delivery on success.

        Raises
        ------
        EmptyTokenError
            *token* is empty.
        DeliveryRejectedError
            The collector answered with a non-2xx status.
        RelayTransportError
            The request never got an HTTP answer.
        ConfigUnavailableError
            The collector settings could not be read.
        """
        if not token:
            raise EmptyTokenError("No session token available to send")

        relay_config = await self.read_relay_config()
        headers = build_headers(relay_config.auth_token)
        payload = build_payload(token, now_ms=self._state.now_ms())

        _logger.debug("Delivering token %s to %s", mask_token(token), relay_config.endpoint)
        response = await self._transport.post_json(
            relay_config.endpoint,
            payload.model_dump(),
            headers=headers,
            timeout=self._config.request_timeout,
            verify_tls=not relay_config.insecure,
        )
        if not response.ok:
            excerpt = response.text[:200].strip()
            message = f"HTTP {response.status} from {relay_config.endpoint}"
            if excerpt:
                message = f"{message}: {excerpt}"
            raise DeliveryRejectedError(
                message,
                status_code=response.status,
                endpoint=relay_config.endpoint,
                body=excerpt,
            )

        record = self._state.mark_delivered(token)
        await self._persist(
            {
                KEY_LAST_DELIVERED_TOKEN: record.last_delivered_token,
                KEY_LAST_DELIVERED_AT: record.last_delivered_at_millis,
            },
            what="delivery record",
        )
        _logger.info("Delivered token %s to %s", mask_token(token), relay_config.endpoint)
        return record

    async def _persist(self, items: dict[str, object], *, what: str) -> None:
        try:
            await self._store.set_many(items)
        except Exception:
            _logger.warning("Failed to persist %s", what, exc_info=True)


async def load_relay_settings(store: ConfigStore) -> RelayConfig:
    """Read collector settings as an operator sees them.

    A legacy endpoint is migrated and written back; an empty endpoint stays
    empty (the default only applies at delivery time).
    """
    items = await store.get_many(RELAY_SETTING_KEYS)
    stored_endpoint = str(items.get(KEY_RELAY_ENDPOINT) or "")
    endpoint = normalize_endpoint(stored_endpoint)
    if endpoint and endpoint != stored_endpoint:
        try:
            await store.set_many({KEY_RELAY_ENDPOINT: endpoint})
        except Exception:
            _logger.warning("Failed to persist migrated endpoint", exc_info=True)
    return RelayConfig(
        endpoint=endpoint,
        auth_token=items.get(KEY_RELAY_AUTH_TOKEN),
        insecure=items.get(KEY_RELAY_INSECURE, False),
    )


async def save_relay_settings(
    store: ConfigStore,
    endpoint: str,
    auth_token: str = "",
    *,
    insecure: bool = False,
) -> RelayConfig:
    """Persist collector settings. Store errors propagate to the caller."""
    settings = RelayConfig(
        endpoint=normalize_endpoint(endpoint),
        auth_token=auth_token,
        insecure=insecure,
    )
    await store.set_many(
        {
            KEY_RELAY_ENDPOINT: settings.endpoint,
            KEY_RELAY_AUTH_TOKEN: settings.auth_token,
            KEY_RELAY_INSECURE: settings.insecure,
        }
    )
    _logger.info("Saved collector endpoint %s", settings.endpoint or "<default>")
    return settings
