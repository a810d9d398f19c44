"""Credential sources and host change notifications.

A credential source is the authoritative holder of the session cookie.
sessionrelay never logs in by itself; it reads the cookie from a jar the
host keeps up to date.
"""

from __future__ import annotations

import asyncio
import contextlib
import http.cookiejar
import logging
import os
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any, Protocol

import aiohttp
from aiohttp.abc import AbstractCookieJar
from yarl import URL

from sessionrelay._redact import mask_token
from sessionrelay.config import SessionRelayConfig
from sessionrelay.exceptions import AcquisitionError
from sessionrelay.state.events import CookieChange
from sessionrelay.state.policy import domain_matches

_logger = logging.getLogger(__name__)

CookieListener = Callable[[CookieChange], None]


class CredentialSource(Protocol):
    """Structural interface for the authoritative token holder."""

    async def get_token(self) -> str:
        """Return the current token or raise :class:`AcquisitionError`."""
        ...


class CookieJarSource:
    """Read the session cookie from an aiohttp cookie jar."""

    def __init__(self, jar: AbstractCookieJar, url: str, name: str) -> None:
        self._jar = jar
        self._url = URL(url)
        self._name = name

    @classmethod
    def from_config(cls, jar: AbstractCookieJar, config: SessionRelayConfig) -> CookieJarSource:
        return cls(jar, config.target_url, config.cookie_name)

    async def get_token(self) -> str:
        cookies = self._jar.filter_cookies(self._url)
        morsel = cookies.get(self._name)
        if morsel is None or not morsel.value:
            raise AcquisitionError(f"Cookie {self._name!r} not found for {self._url}; is the account logged in?")
        return morsel.value


class CookieFileSource:
    """Read the session cookie from a Netscape/Mozilla ``cookies.txt`` export.

    The file is re-read on every call so an external exporter (browser
    extension, ``yt-dlp --cookies``-style tooling) can keep it fresh.
    """

    def __init__(self, path: str | os.PathLike[str], domain: str, name: str) -> None:
        self._path = Path(path)
        self._domain = domain
        self._name = name

    @classmethod
    def from_config(cls, path: str | os.PathLike[str], config: SessionRelayConfig) -> CookieFileSource:
        return cls(path, config.target_domain, config.cookie_name)

    def _load(self) -> str:
        jar = http.cookiejar.MozillaCookieJar(str(self._path))
        try:
            jar.load(ignore_discard=True, ignore_expires=True)
        except FileNotFoundError as exc:
            raise AcquisitionError(f"Cookie file {self._path} does not exist") from exc
        except (OSError, http.cookiejar.LoadError) as exc:
            raise AcquisitionError(f"Cannot load cookie file {self._path}: {exc}") from exc

        matches = [
            cookie
            for cookie in jar
            if cookie.name == self._name and cookie.value and domain_matches(cookie.domain, self._domain)
        ]
        if not matches:
            raise AcquisitionError(f"Cookie {self._name!r} for {self._domain} not found in {self._path}")
        # Several exports may carry stale duplicates; the longest-lived one is current.
        best = max(matches, key=lambda cookie: cookie.expires or 0)
        return str(best.value)

    async def get_token(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load)


class ObservedCookieJar(aiohttp.CookieJar):
    """Cookie jar that reports value changes to registered listeners.

    Hand it to an :class:`aiohttp.ClientSession` that talks to the target
    site and subscribe :meth:`sessionrelay.service.SessionRelay.handle_change`
    to get event-driven token updates.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._listeners: list[CookieListener] = []
        self._observing = False

    def add_listener(self, listener: CookieListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CookieListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _snapshot(self) -> dict[tuple[str, str], str]:
        return {(morsel["domain"], morsel.key): morsel.value for morsel in self}

    def update_cookies(self, cookies: Any, response_url: URL = URL()) -> None:  # noqa: B008
        with self._observe():
            super().update_cookies(cookies, response_url)

    def update_cookies_from_headers(self, headers: Sequence[str], response_url: URL) -> None:
        # ClientSession stores response cookies through this entry point on
        # aiohttp 3.12+, bypassing update_cookies.
        with self._observe():
            super().update_cookies_from_headers(headers, response_url)

    @contextlib.contextmanager
    def _observe(self) -> Iterator[None]:
        if self._observing:
            # Nested call from the base class; the outer call reports.
            yield
            return
        self._observing = True
        try:
            before = self._snapshot()
            yield
            after = self._snapshot()
        finally:
            self._observing = False
        self._dispatch(before, after)

    def _dispatch(self, before: dict[tuple[str, str], str], after: dict[tuple[str, str], str]) -> None:
        changes: list[CookieChange] = []
        for (domain, name), value in after.items():
            if before.get((domain, name)) != value:
                changes.append(CookieChange(domain=domain, name=name, value=value))
        for domain, name in before.keys() - after.keys():
            changes.append(CookieChange(domain=domain, name=name, removed=True))

        for change in changes:
            _logger.debug(
                "Cookie %s on %s %s (%s)",
                change.name,
                change.domain,
                "removed" if change.removed else "changed",
                mask_token(change.value),
            )
            for listener in list(self._listeners):
                try:
                    listener(change)
                except Exception:
                    _logger.warning("Cookie listener failed", exc_info=True)
