from __future__ import annotations

import pytest
from conftest import UnavailableStore

from sessionrelay._cache import TokenCache
from sessionrelay.configstore import MemoryConfigStore
from sessionrelay.models.token import TokenOrigin
from sessionrelay.state.store import RelayState


@pytest.mark.asyncio
async def test_memory_hit_short_circuits_store(state: RelayState) -> None:
    state.set_token("MEM")
    cache = TokenCache(state, UnavailableStore())

    assert await cache.get() == "MEM"


@pytest.mark.asyncio
async def test_persisted_hit_populates_memory(state: RelayState) -> None:
    cache = TokenCache(state, MemoryConfigStore({"cached_token": "DISK"}))

    assert await cache.get() == "DISK"
    entry = cache.entry()
    assert entry is not None
    assert entry.token == "DISK"
    assert entry.origin == TokenOrigin.PERSISTED
    assert cache.peek() == "DISK"


@pytest.mark.asyncio
async def test_miss_returns_none(state: RelayState, store: MemoryConfigStore) -> None:
    cache = TokenCache(state, store)
    assert await cache.get() is None
    assert cache.peek() is None


@pytest.mark.asyncio
async def test_unavailable_store_degrades_to_memory_only(state: RelayState) -> None:
    cache = TokenCache(state, UnavailableStore())
    assert await cache.get() is None


@pytest.mark.asyncio
async def test_set_persists_and_can_be_awaited(state: RelayState, store: MemoryConfigStore) -> None:
    cache = TokenCache(state, store)

    write = cache.set("NEW")
    assert write is not None
    await write

    assert state.token == "NEW"
    assert store.snapshot()["cached_token"] == "NEW"


@pytest.mark.asyncio
async def test_set_without_persist_stays_in_memory(state: RelayState, store: MemoryConfigStore) -> None:
    cache = TokenCache(state, store)

    assert cache.set("NEW", persist=False) is None
    assert state.token == "NEW"
    assert "cached_token" not in store.snapshot()


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", None])
async def test_falsy_token_is_never_cached(state: RelayState, store: MemoryConfigStore, token: str | None) -> None:
    state.set_token("KEEP")
    cache = TokenCache(state, store)

    assert cache.set(token) is None
    assert state.token == "KEEP"


@pytest.mark.asyncio
async def test_failed_write_keeps_memory_and_does_not_raise(state: RelayState) -> None:
    failing = UnavailableStore()
    cache = TokenCache(state, failing)

    write = cache.set("NEW")
    assert write is not None
    await write
    await cache.flush()

    assert failing.writes == 1
    assert state.token == "NEW"
