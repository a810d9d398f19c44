"""Change detection: host cookie notifications and periodic polling.

Both channels only produce :class:`CandidateToken` events onto a shared
queue; the orchestrator's single consumer decides what to deliver.
"""

from __future__ import annotations

import asyncio
import logging

from sessionrelay._cache import TokenCache
from sessionrelay._redact import mask_token
from sessionrelay.config import SessionRelayConfig
from sessionrelay.source import CredentialSource
from sessionrelay.state.events import CandidateOrigin, CandidateToken, CookieChange
from sessionrelay.state.policy import is_watched_change
from sessionrelay.state.store import RelayState

_logger = logging.getLogger(__name__)


class ChangeDetector:
    """Normalize host events and timer polls into candidate tokens."""

    def __init__(
        self,
        config: SessionRelayConfig,
        state: RelayState,
        cache: TokenCache,
        source: CredentialSource,
        candidates: asyncio.Queue[CandidateToken],
    ) -> None:
        self._config = config
        self._state = state
        self._cache = cache
        self._source = source
        self._candidates = candidates
        self._poll_failures = 0

    @property
    def consecutive_poll_failures(self) -> int:
        return self._poll_failures

    def emit(self, token: str, origin: CandidateOrigin) -> CandidateToken:
        candidate = CandidateToken(value=token, force=False, origin=origin)
        self._candidates.put_nowait(candidate)
        return candidate

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def handle_change(self, change: CookieChange) -> bool:
        """Accept a host cookie notification if it concerns the watched cookie.

        Returns ``True`` when the change updated the cache and produced a
        candidate.
        """
        if not is_watched_change(
            change,
            target_domain=self._config.target_domain,
            cookie_name=self._config.cookie_name,
        ):
            return False
        _logger.debug("Cookie change on %s accepted: %s", change.domain, mask_token(change.value))
        self._cache.set(change.value, persist=True)
        self.emit(change.value, CandidateOrigin.EVENT)
        return True

    # ------------------------------------------------------------------
    # Timer channel
    # ------------------------------------------------------------------

    async def poll_once(self) -> CandidateToken | None:
        """Re-query the credential source once.

        Returns the emitted candidate, or ``None`` when the value is
        unchanged or the source failed. Failures never touch the cache.
        """
        try:
            token = await self._source.get_token()
        except Exception as exc:
            self._record_poll_failure(exc)
            return None

        if self._poll_failures:
            _logger.info("Credential source recovered after %d failed polls", self._poll_failures)
            self._poll_failures = 0

        if not token or token == self._state.token:
            return None
        _logger.info("Polled token changed to %s", mask_token(token))
        self._cache.set(token, persist=True)
        return self.emit(token, CandidateOrigin.TIMER)

    def _record_poll_failure(self, exc: Exception) -> None:
        self._poll_failures += 1
        count = self._poll_failures
        if count == 1 or count % self._config.poll_failure_warn_every == 0:
            _logger.warning("Credential poll failed (%d consecutive): %s", count, exc)
        else:
            _logger.debug("Credential poll failed (%d consecutive)", count, exc_info=True)

    async def run_timer(self) -> None:
        """Poll forever every ``poll_interval`` seconds until cancelled."""
        interval = self._config.poll_interval
        _logger.debug("Polling credential source every %gs", interval)
        while True:
            await asyncio.sleep(interval)
            await self.poll_once()
