"""Delivery guard: deduplication and mutual exclusion around the relay client.

Two entry points with different contracts:

* :meth:`SendGuard.submit` is the guarded path used by change detection.
  It skips tokens that were already delivered, skips while another guarded
  delivery is in flight, and never raises.
* :meth:`SendGuard.force` is the operator's connectivity test. It ignores
  the gate and the delivery record entirely and raises on failure.
"""

from __future__ import annotations

import logging

from sessionrelay._redact import mask_token
from sessionrelay.models.delivery import DeliveryOutcome, DeliveryRecord
from sessionrelay.relay import RelayClient
from sessionrelay.state.policy import is_duplicate
from sessionrelay.state.store import RelayState

_logger = logging.getLogger(__name__)


class SendGuard:
    def __init__(self, state: RelayState, relay: RelayClient) -> None:
        self._state = state
        self._relay = relay

    @property
    def sending(self) -> bool:
        return self._state.sending

    async def submit(self, token: str | None) -> DeliveryOutcome:
        """Deliver *token* unless it is a duplicate or a delivery is in flight."""
        if not token:
            return DeliveryOutcome.EMPTY
        if is_duplicate(token, self._state.record):
            _logger.debug("Token %s already delivered, skipping", mask_token(token))
            return DeliveryOutcome.DUPLICATE
        if not await self._state.try_acquire_gate():
            _logger.debug("Delivery in flight, skipping token %s", mask_token(token))
            return DeliveryOutcome.IN_FLIGHT

        try:
            # The gate holder before us may have delivered this very token.
            if is_duplicate(token, self._state.record):
                return DeliveryOutcome.DUPLICATE
            await self._relay.deliver(token)
        except Exception:
            _logger.warning("Delivery of token %s failed", mask_token(token), exc_info=True)
            return DeliveryOutcome.FAILED
        finally:
            self._state.release_gate()
        return DeliveryOutcome.DELIVERED

    async def force(self, token: str | None) -> DeliveryRecord:
        """Deliver *token* now, bypassing dedup and the in-flight gate.

        Every failure propagates to the caller.
        """
        _logger.info("Forced delivery of token %s", mask_token(token))
        return await self._relay.deliver(token or "")
