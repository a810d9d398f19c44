from __future__ import annotations

import asyncio

import pytest

from sessionrelay.models.delivery import DeliveryRecord
from sessionrelay.models.token import TokenOrigin
from sessionrelay.state.store import RelayState


def test_token_is_last_writer_wins() -> None:
    state = RelayState()
    assert state.token is None
    assert state.entry is None

    state.set_token("A", TokenOrigin.PERSISTED)
    state.set_token("B")

    assert state.token == "B"
    assert state.entry is not None
    assert state.entry.origin == TokenOrigin.MEMORY


def test_empty_token_never_overwrites() -> None:
    state = RelayState()
    state.set_token("A")
    state.set_token("")

    assert state.token == "A"


def test_mark_delivered_uses_injected_clock() -> None:
    ticks = iter([10, 20])
    state = RelayState(clock_ms=lambda: next(ticks))

    first = state.mark_delivered("A")
    second = state.mark_delivered("B")

    assert first == DeliveryRecord(last_delivered_token="A", last_delivered_at_millis=10)
    assert state.record is second
    assert second.last_delivered_at_millis == 20


def test_restore_record_replaces_bookkeeping() -> None:
    state = RelayState()
    state.restore_record(DeliveryRecord(last_delivered_token="OLD", last_delivered_at_millis=5))

    assert state.record.last_delivered_token == "OLD"


class TestDeliveryGate:
    @pytest.mark.asyncio
    async def test_single_slot(self) -> None:
        state = RelayState()

        assert await state.try_acquire_gate() is True
        assert state.sending is True
        assert await state.try_acquire_gate() is False

        state.release_gate()
        assert state.sending is False
        assert await state.try_acquire_gate() is True
        state.release_gate()

    @pytest.mark.asyncio
    async def test_concurrent_acquirers_admit_exactly_one(self) -> None:
        state = RelayState()

        results = await asyncio.gather(*(state.try_acquire_gate() for _ in range(5)))

        assert results.count(True) == 1
        state.release_gate()
