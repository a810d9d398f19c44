from __future__ import annotations

import pytest
from conftest import FIXED_NOW_MS, FakeCollector, UnavailableStore

from sessionrelay._constants import DEFAULT_ENDPOINT
from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import MemoryConfigStore
from sessionrelay.exceptions import DeliveryRejectedError, EmptyTokenError, RelayTransportError
from sessionrelay.relay import RelayClient, load_relay_settings, save_relay_settings
from sessionrelay.state.store import RelayState


def _client(
    config: SessionRelayConfig,
    state: RelayState,
    store: MemoryConfigStore,
    collector: FakeCollector,
) -> RelayClient:
    return RelayClient(config, state, store, collector)


@pytest.mark.asyncio
async def test_deliver_posts_payload_and_records_success(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
) -> None:
    store = MemoryConfigStore({"relay_endpoint": "https://nas.example/api/collect-session"})

    record = await _client(config, state, store, collector).deliver("SID1")

    assert len(collector.calls) == 1
    call = collector.calls[0]
    assert call["url"] == "https://nas.example/api/collect-session"
    assert call["body"] == {"service": "instagram", "key": "sessionid", "value": "SID1", "ts": FIXED_NOW_MS}
    assert call["headers"] == {"Content-Type": "application/json"}
    assert call["timeout"] == config.request_timeout
    assert call["verify_tls"] is True

    assert record.last_delivered_token == "SID1"
    assert state.record.last_delivered_at_millis == FIXED_NOW_MS
    persisted = store.snapshot()
    assert persisted["last_delivered_token"] == "SID1"
    assert persisted["last_delivered_at_millis"] == FIXED_NOW_MS


@pytest.mark.asyncio
async def test_legacy_endpoint_is_migrated_and_persisted(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
) -> None:
    store = MemoryConfigStore({"relay_endpoint": "https://nas.example:5001/collect-session?v=2"})

    await _client(config, state, store, collector).deliver("SID1")

    assert collector.calls[0]["url"] == "https://nas.example:5001/api/collect-session?v=2"
    assert store.snapshot()["relay_endpoint"] == "https://nas.example:5001/api/collect-session?v=2"


@pytest.mark.asyncio
async def test_missing_endpoint_falls_back_to_default_and_persists(
    config: SessionRelayConfig,
    state: RelayState,
    store: MemoryConfigStore,
    collector: FakeCollector,
) -> None:
    await _client(config, state, store, collector).deliver("SID1")

    assert collector.calls[0]["url"] == DEFAULT_ENDPOINT
    assert store.snapshot()["relay_endpoint"] == DEFAULT_ENDPOINT


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("auth_token", "expected"),
    [("abc123", "Bearer abc123"), ("Token xyz", "Token xyz"), ("Bearer xyz", "Bearer xyz")],
)
async def test_auth_header_read_from_store(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
    auth_token: str,
    expected: str,
) -> None:
    store = MemoryConfigStore({"relay_endpoint": "https://nas.example/api/collect-session", "relay_auth_token": auth_token})

    await _client(config, state, store, collector).deliver("SID1")

    assert collector.calls[0]["headers"]["Authorization"] == expected


@pytest.mark.asyncio
async def test_settings_are_read_fresh_on_every_delivery(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
) -> None:
    store = MemoryConfigStore({"relay_endpoint": "https://one.example/api/collect-session"})
    client = _client(config, state, store, collector)

    await client.deliver("SID1")
    await store.set_many({"relay_endpoint": "https://two.example/api/collect-session", "relay_insecure": True})
    await client.deliver("SID2")

    assert [call["url"] for call in collector.calls] == [
        "https://one.example/api/collect-session",
        "https://two.example/api/collect-session",
    ]
    assert collector.calls[1]["verify_tls"] is False


@pytest.mark.asyncio
async def test_non_2xx_raises_and_leaves_record_untouched(
    config: SessionRelayConfig,
    state: RelayState,
    store: MemoryConfigStore,
) -> None:
    collector = FakeCollector(status=403, text="forbidden")

    with pytest.raises(DeliveryRejectedError) as exc_info:
        await _client(config, state, store, collector).deliver("SID1")

    exc = exc_info.value
    assert exc.status_code == 403
    assert exc.body == "forbidden"
    assert exc.endpoint == DEFAULT_ENDPOINT
    assert "HTTP 403" in str(exc)
    assert state.record.last_delivered_token is None
    assert "last_delivered_token" not in store.snapshot()


@pytest.mark.asyncio
async def test_transport_failure_propagates(
    config: SessionRelayConfig,
    state: RelayState,
    store: MemoryConfigStore,
) -> None:
    collector = FakeCollector(error=RelayTransportError("connection refused", endpoint=DEFAULT_ENDPOINT))

    with pytest.raises(RelayTransportError):
        await _client(config, state, store, collector).deliver("SID1")
    assert state.record.last_delivered_token is None


@pytest.mark.asyncio
async def test_empty_token_rejected_before_any_io(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
) -> None:
    client = RelayClient(config, state, UnavailableStore(), collector)

    with pytest.raises(EmptyTokenError):
        await client.deliver("")
    assert collector.calls == []


@pytest.mark.asyncio
async def test_record_persistence_failure_is_not_a_delivery_failure(
    config: SessionRelayConfig,
    state: RelayState,
    collector: FakeCollector,
) -> None:
    store = UnavailableStore(reads_fail=False)

    record = await RelayClient(config, state, store, collector).deliver("SID1")

    assert record.last_delivered_token == "SID1"
    assert state.record.last_delivered_token == "SID1"
    assert store.writes >= 1


@pytest.mark.asyncio
async def test_save_and_load_relay_settings(store: MemoryConfigStore) -> None:
    saved = await save_relay_settings(store, " https://nas.example/collect-session ", "  tok ", insecure=True)

    assert saved.endpoint == "https://nas.example/api/collect-session"
    assert saved.auth_token == "tok"
    assert store.snapshot() == {
        "relay_endpoint": "https://nas.example/api/collect-session",
        "relay_auth_token": "tok",
        "relay_insecure": True,
    }
    assert await load_relay_settings(store) == saved


@pytest.mark.asyncio
async def test_load_relay_settings_migrates_legacy_endpoint() -> None:
    store = MemoryConfigStore({"relay_endpoint": "http://nas/collect-session"})

    settings = await load_relay_settings(store)

    assert settings.endpoint == "http://nas/api/collect-session"
    assert store.snapshot()["relay_endpoint"] == "http://nas/api/collect-session"


@pytest.mark.asyncio
async def test_load_relay_settings_keeps_empty_endpoint(store: MemoryConfigStore) -> None:
    settings = await load_relay_settings(store)

    assert settings.endpoint == ""
    assert store.snapshot() == {}
