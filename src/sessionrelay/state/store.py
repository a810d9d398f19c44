"""Orchestrator-owned relay state.

This is the only place the in-memory token, the delivery record and the
delivery gate live. Components receive the same :class:`RelayState`
instance instead of reaching for module globals.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from sessionrelay.models.delivery import DeliveryRecord
from sessionrelay.models.token import CacheEntry, TokenOrigin


def _now_ms() -> int:
    return int(time.time() * 1000)


class RelayState:
    """Shared mutable state for a single relay process.

    Token writes are last-writer-wins. The delivery gate is a single-slot
    :class:`asyncio.Lock`; :meth:`try_acquire_gate` checks and takes it
    without suspending, so two guarded callers can never both pass.
    """

    def __init__(self, *, clock_ms: Callable[[], int] = _now_ms) -> None:
        self._clock_ms = clock_ms
        self._entry: CacheEntry | None = None
        self._record = DeliveryRecord()
        self._gate = asyncio.Lock()

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    @property
    def token(self) -> str | None:
        return self._entry.token if self._entry is not None else None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def set_token(self, token: str, origin: TokenOrigin = TokenOrigin.MEMORY) -> None:
        if not token:
            return
        self._entry = CacheEntry(token=token, origin=origin)

    # ------------------------------------------------------------------
    # Delivery record
    # ------------------------------------------------------------------

    @property
    def record(self) -> DeliveryRecord:
        return self._record

    def restore_record(self, record: DeliveryRecord) -> None:
        """Seed the record from persisted bookkeeping (startup only)."""
        self._record = record

    def mark_delivered(self, token: str) -> DeliveryRecord:
        self._record = DeliveryRecord(
            last_delivered_token=token,
            last_delivered_at_millis=self._clock_ms(),
        )
        return self._record

    def now_ms(self) -> int:
        return self._clock_ms()

    # ------------------------------------------------------------------
    # Delivery gate
    # ------------------------------------------------------------------

    @property
    def sending(self) -> bool:
        return self._gate.locked()

    async def try_acquire_gate(self) -> bool:
        """Take the delivery gate if it is free.

        Nothing ever waits on the gate, so an uncontended acquire completes
        without yielding to the event loop.
        """
        if self._gate.locked():
            return False
        await self._gate.acquire()
        return True

    def release_gate(self) -> None:
        self._gate.release()
