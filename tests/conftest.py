from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from sessionrelay._transport import TransportResponse
from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import MemoryConfigStore
from sessionrelay.exceptions import AcquisitionError, ConfigUnavailableError
from sessionrelay.state.store import RelayState

FIXED_NOW_MS = 1_771_000_000_000


@dataclass
class FakeCollector:
    """Transport double recording every POST."""

    status: int = 200
    text: str = "ok"
    error: Exception | None = None
    block_next: asyncio.Event | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str],
        timeout: float,
        verify_tls: bool = True,
    ) -> TransportResponse:
        self.calls.append(
            {
                "url": url,
                "body": dict(body),
                "headers": dict(headers),
                "timeout": timeout,
                "verify_tls": verify_tls,
            }
        )
        gate, self.block_next = self.block_next, None
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return TransportResponse(status=self.status, text=self.text)

    @property
    def delivered_values(self) -> list[str]:
        return [call["body"]["value"] for call in self.calls]


@dataclass
class FakeSource:
    """Credential source double."""

    token: str | None = "SID1"
    error: Exception | None = None
    calls: int = 0

    async def get_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if not self.token:
            raise AcquisitionError("sessionid cookie not found")
        return self.token


class UnavailableStore:
    """Config store whose backing storage is gone."""

    def __init__(self, *, reads_fail: bool = True) -> None:
        self._reads_fail = reads_fail
        self.writes = 0

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        if self._reads_fail:
            raise ConfigUnavailableError("store offline")
        return {}

    async def set_many(self, items: Mapping[str, Any]) -> None:
        self.writes += 1
        raise ConfigUnavailableError("store offline")


async def wait_for_calls(collector: FakeCollector, count: int, *, timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while len(collector.calls) < count:
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def config() -> SessionRelayConfig:
    return SessionRelayConfig(poll_interval=0, request_timeout=5.0)


@pytest.fixture
def state() -> RelayState:
    return RelayState(clock_ms=lambda: FIXED_NOW_MS)


@pytest.fixture
def store() -> MemoryConfigStore:
    return MemoryConfigStore()


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()
