"""Token cache: in-memory fast path backed by the persisted config store."""

from __future__ import annotations

import asyncio
import logging

from sessionrelay._constants import KEY_CACHED_TOKEN
from sessionrelay._redact import mask_token
from sessionrelay.configstore import ConfigStore, store_get
from sessionrelay.exceptions import ConfigUnavailableError
from sessionrelay.models.token import CacheEntry, TokenOrigin
from sessionrelay.state.store import RelayState

_logger = logging.getLogger(__name__)


class TokenCache:
    """Hold the last-known token in :class:`RelayState` and in the config store.

    The cache never talks to the credential source; acquisition is the
    caller's job. It also never triggers deliveries by itself.
    """

    def __init__(self, state: RelayState, store: ConfigStore) -> None:
        self._state = state
        self._store = store
        self._pending: set[asyncio.Task[None]] = set()

    def peek(self) -> str | None:
        """Memory copy only, no I/O."""
        return self._state.token

    def entry(self) -> CacheEntry | None:
        return self._state.entry

    async def get(self) -> str | None:
        """Return the memory copy, else the persisted copy, else ``None``."""
        token = self._state.token
        if token:
            return token
        try:
            stored = await store_get(self._store, KEY_CACHED_TOKEN)
        except ConfigUnavailableError:
            _logger.warning("Config store unavailable, running memory-only", exc_info=True)
            return None
        if isinstance(stored, str) and stored:
            # Another writer may have filled memory while we were reading.
            if self._state.token:
                return self._state.token
            self._state.set_token(stored, TokenOrigin.PERSISTED)
            _logger.debug("Recovered cached token %s from store", mask_token(stored))
            return stored
        return None

    def set(self, token: str | None, *, persist: bool = True) -> asyncio.Task[None] | None:
        """Update the memory copy and optionally schedule a persisted write.

        Returns the write task so callers can ``await`` completion, or
        ``None`` when nothing was scheduled. A failed write is logged and
        never raised; the memory copy stays updated either way.
        """
        if not token:
            return None
        self._state.set_token(token, TokenOrigin.MEMORY)
        if not persist:
            return None
        task = asyncio.get_running_loop().create_task(self._persist(token))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _persist(self, token: str) -> None:
        try:
            await self._store.set_many({KEY_CACHED_TOKEN: token})
        except Exception:
            _logger.warning("Failed to persist cached token %s", mask_token(token), exc_info=True)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
