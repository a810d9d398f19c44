"""High-level async orchestrator for the session relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from sessionrelay._cache import TokenCache
from sessionrelay._constants import KEY_LAST_DELIVERED_AT, KEY_LAST_DELIVERED_TOKEN
from sessionrelay._redact import mask_token
from sessionrelay._transport import HttpTransport, Transport
from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import ConfigStore
from sessionrelay.detector import ChangeDetector
from sessionrelay.exceptions import ConfigUnavailableError, SessionRelayError
from sessionrelay.guard import SendGuard
from sessionrelay.models.delivery import DeliveryOutcome, DeliveryRecord, RelayConfig
from sessionrelay.models.responses import AcquisitionResponse, TestDeliveryResponse
from sessionrelay.relay import RelayClient, load_relay_settings, save_relay_settings
from sessionrelay.source import CredentialSource
from sessionrelay.state.events import CandidateOrigin, CandidateToken, CookieChange
from sessionrelay.state.store import RelayState

_logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SessionRelay:
    """Keep the session token cached and relay it to the collector on change.

    Usage::

        store = JsonFileConfigStore("state.json")
        source = CookieFileSource("cookies.txt", "instagram.com", "sessionid")
        async with SessionRelay(SessionRelayConfig.from_env(), source, store) as relay:
            response = await relay.request_token()

    Host cookie notifications go to :meth:`handle_change`; an
    :class:`~sessionrelay.source.ObservedCookieJar` can call it directly
    as a listener.
    """

    def __init__(
        self,
        config: SessionRelayConfig,
        source: CredentialSource,
        store: ConfigStore,
        *,
        transport: Transport | None = None,
        session: aiohttp.ClientSession | None = None,
        state: RelayState | None = None,
    ) -> None:
        self._config = config
        self._source = source
        self._store = store
        self._transport = transport
        self._external_session = session is not None
        self._http_session = session
        self._state = state if state is not None else RelayState()
        self._cache = TokenCache(self._state, store)
        self._candidates: asyncio.Queue[CandidateToken] = asyncio.Queue()
        self._detector = ChangeDetector(config, self._state, self._cache, source, self._candidates)
        self._guard: SendGuard | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._timer_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SessionRelay:
        transport = self._transport
        if transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = HttpTransport(self._http_session)
        relay = RelayClient(self._config, self._state, self._store, transport)
        self._guard = SendGuard(self._state, relay)

        try:
            await self._start()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def _start(self) -> None:
        await self._restore_delivery_record()

        loop = asyncio.get_running_loop()
        self._consumer_task = loop.create_task(self._consume())
        if self._config.poll_interval > 0:
            self._timer_task = loop.create_task(self._detector.run_timer())

        token, _ = await self._warm_cache()
        if token and self._config.startup_delivery:
            self._detector.emit(token, CandidateOrigin.STARTUP)

    async def __aexit__(self, *exc: Any) -> None:
        for task in (self._timer_task, self._consumer_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._timer_task = None
        self._consumer_task = None
        await self._cache.flush()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._guard = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> SessionRelayConfig:
        return self._config

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def detector(self) -> ChangeDetector:
        return self._detector

    @property
    def last_delivery(self) -> DeliveryRecord:
        return self._state.record

    def _require_guard(self) -> SendGuard:
        if self._guard is None:
            raise SessionRelayError("Relay not started. Use 'async with SessionRelay(...) as relay:'")
        return self._guard

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def _restore_delivery_record(self) -> None:
        try:
            items = await self._store.get_many([KEY_LAST_DELIVERED_TOKEN, KEY_LAST_DELIVERED_AT])
            record = DeliveryRecord(
                last_delivered_token=items.get(KEY_LAST_DELIVERED_TOKEN),
                last_delivered_at_millis=items.get(KEY_LAST_DELIVERED_AT),
            )
        except (ConfigUnavailableError, ValidationError):
            _logger.warning("Could not restore delivery record, starting without one", exc_info=True)
            return
        self._state.restore_record(record)

    async def _warm_cache(self) -> tuple[str | None, bool]:
        """Memory, then store, then credential source.

        Returns the token and whether it was freshly acquired from the
        source.
        """
        token = await self._cache.get()
        if token:
            return token, False
        try:
            token = await self._source.get_token()
        except Exception:
            _logger.debug("Credential source unavailable during warm-up", exc_info=True)
            return None, False
        if not token:
            return None, False
        write = self._cache.set(token, persist=True)
        if write is not None:
            await write
        _logger.info("Acquired token %s from credential source", mask_token(token))
        return token, True

    async def ensure_cached(self) -> str | None:
        """Return the cached token, acquiring it if needed. Never raises."""
        token, _ = await self._warm_cache()
        return token

    async def request_token(self) -> AcquisitionResponse:
        """Answer a "current token" request from a UI or test trigger."""
        token, fresh = await self._warm_cache()
        if token:
            if fresh:
                self._detector.emit(token, CandidateOrigin.REQUEST)
            return AcquisitionResponse.success(token)

        try:
            token = await self._source.get_token()
        except Exception as exc:
            return AcquisitionResponse.failure(_error_text(exc))
        if not token:
            return AcquisitionResponse.failure("Credential source returned an empty token")
        self._cache.set(token, persist=True)
        self._detector.emit(token, CandidateOrigin.REQUEST)
        return AcquisitionResponse.success(token)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def handle_change(self, change: CookieChange) -> bool:
        """Feed a host cookie notification to the event channel."""
        return self._detector.handle_change(change)

    async def submit(self, token: str | None) -> DeliveryOutcome:
        """Run a guarded delivery directly, bypassing the candidate queue."""
        return await self._require_guard().submit(token)

    async def request_test_delivery(self) -> TestDeliveryResponse:
        """Force-send the current token now and report the result."""
        guard = self._require_guard()
        token = await self.ensure_cached()
        try:
            await guard.force(token)
        except Exception as exc:
            _logger.info("Test delivery failed: %s", _error_text(exc))
            return TestDeliveryResponse(ok=False, error=_error_text(exc))
        return TestDeliveryResponse(ok=True)

    async def drain(self) -> None:
        """Wait until every queued candidate has been evaluated."""
        await self._candidates.join()

    async def _consume(self) -> None:
        guard = self._require_guard()
        while True:
            candidate = await self._candidates.get()
            try:
                outcome = await guard.submit(candidate.value)
                _logger.debug(
                    "Candidate %s from %s: %s",
                    mask_token(candidate.value),
                    candidate.origin,
                    outcome,
                )
            finally:
                self._candidates.task_done()

    # ------------------------------------------------------------------
    # Relay settings
    # ------------------------------------------------------------------

    async def load_relay_settings(self) -> RelayConfig:
        """Read collector settings, migrating a legacy endpoint in place."""
        return await load_relay_settings(self._store)

    async def save_relay_settings(
        self,
        endpoint: str,
        auth_token: str = "",
        *,
        insecure: bool = False,
    ) -> RelayConfig:
        """Persist collector settings. Store errors propagate to the caller."""
        return await save_relay_settings(self._store, endpoint, auth_token, insecure=insecure)
