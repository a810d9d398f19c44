"""Persisted key-value stores for relay bookkeeping and settings.

The store is the only thing that survives a restart: the cached token,
the last delivery record and the collector settings. Every operation is
awaitable; callers that don't need completion schedule it as a task.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from sessionrelay.exceptions import ConfigUnavailableError

_logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Structural interface for the persisted key-value mapping.

    Implementations raise :class:`ConfigUnavailableError` when the backing
    storage cannot be reached.
    """

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the stored values for *keys*; missing keys are omitted."""
        ...

    async def set_many(self, items: Mapping[str, Any]) -> None:
        ...


async def store_get(store: ConfigStore, key: str) -> Any:
    """Read a single key, ``None`` when absent."""
    items = await store.get_many([key])
    return items.get(key)


class MemoryConfigStore:
    """Process-local store. Useful for tests and embedding."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set_many(self, items: Mapping[str, Any]) -> None:
        self._data.update(copy.deepcopy(dict(items)))

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileConfigStore:
    """Store backed by a single JSON object on disk.

    Reads and writes run in the default executor. Writes replace the file
    atomically and are serialized so concurrent ``set_many`` calls cannot
    interleave their read-modify-write cycles.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise ConfigUnavailableError(f"Cannot read {self._path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigUnavailableError(f"{self._path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigUnavailableError(f"{self._path} does not hold a JSON object")
        return data

    def _write(self, items: dict[str, Any]) -> None:
        data = self._read()
        data.update(items)
        try:
            text = json.dumps(data, indent=2, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ConfigUnavailableError(f"Cannot serialize settings for {self._path}: {exc}") from exc
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise ConfigUnavailableError(f"Cannot write {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        wanted = list(keys)
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read)
        return {key: data[key] for key in wanted if key in data}

    async def set_many(self, items: Mapping[str, Any]) -> None:
        payload = dict(items)
        loop = asyncio.get_running_loop()
        async with self._write_lock:
            await loop.run_in_executor(None, self._write, payload)
        _logger.debug("Persisted keys %s to %s", sorted(payload), self._path)
