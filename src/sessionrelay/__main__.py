"""Command-line entry point.

Examples::

    sessionrelay configure --endpoint https://nas.local/api/collect-session --auth-token s3cret
    sessionrelay --cookies ~/cookies.txt get
    sessionrelay --cookies ~/cookies.txt test-send
    sessionrelay --cookies ~/cookies.txt watch
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from pathlib import Path

from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import JsonFileConfigStore
from sessionrelay.exceptions import SessionRelayError
from sessionrelay.relay import save_relay_settings
from sessionrelay.service import SessionRelay
from sessionrelay.source import CookieFileSource

_logger = logging.getLogger("sessionrelay")

_DEFAULT_STATE = Path.home() / ".sessionrelay" / "state.json"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sessionrelay",
        description="Keep a session cookie cached and relay it to a collector when it changes",
    )
    parser.add_argument(
        "--cookies",
        default=os.environ.get("SESSIONRELAY_COOKIES"),
        help="Netscape cookies.txt file holding the session cookie (env: SESSIONRELAY_COOKIES).",
    )
    parser.add_argument(
        "--state",
        default=os.environ.get("SESSIONRELAY_STATE", str(_DEFAULT_STATE)),
        help=f"JSON file for cached token, delivery record and settings (default: {_DEFAULT_STATE}).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("watch", help="Poll the cookie file and relay the token whenever it changes.")
    sub.add_parser("get", help="Print the current session token.")
    sub.add_parser("test-send", help="Force-send the current token to the collector.")

    configure = sub.add_parser("configure", help="Save collector settings.")
    configure.add_argument("--endpoint", required=True, help="Collector URL.")
    configure.add_argument(
        "--auth-token",
        default="",
        help="Collector auth token; a bare token is sent as 'Bearer <token>'.",
    )
    configure.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification (self-signed NAS certificates).",
    )
    return parser.parse_args(argv)


def _build_relay(args: argparse.Namespace, config: SessionRelayConfig) -> SessionRelay:
    if not args.cookies:
        raise SessionRelayError("--cookies (or SESSIONRELAY_COOKIES) is required for this command")
    source = CookieFileSource.from_config(Path(args.cookies).expanduser(), config)
    store = JsonFileConfigStore(Path(args.state).expanduser())
    return SessionRelay(config, source, store)


async def _watch(args: argparse.Namespace, config: SessionRelayConfig) -> int:
    async with _build_relay(args, config):
        _logger.info("Watching %s every %gs; press Ctrl+C to stop", args.cookies, config.poll_interval)
        await asyncio.Event().wait()
    return 0


async def _get(args: argparse.Namespace, config: SessionRelayConfig) -> int:
    async with _build_relay(args, config) as relay:
        response = await relay.request_token()
        await relay.drain()
    if not response.ok:
        print(f"error: {response.error}", file=sys.stderr)
        return 1
    print(response.token)
    return 0


async def _test_send(args: argparse.Namespace, config: SessionRelayConfig) -> int:
    async with _build_relay(args, config) as relay:
        response = await relay.request_test_delivery()
    if not response.ok:
        print(f"error: {response.error}", file=sys.stderr)
        return 1
    print("Test delivery succeeded")
    return 0


async def _configure(args: argparse.Namespace, config: SessionRelayConfig) -> int:
    store = JsonFileConfigStore(Path(args.state).expanduser())
    settings = await save_relay_settings(
        store,
        args.endpoint,
        args.auth_token,
        insecure=args.insecure,
    )
    print(f"Saved endpoint {settings.endpoint}")
    return 0


async def _run(args: argparse.Namespace) -> int:
    config = SessionRelayConfig.from_env()
    if args.command != "watch":
        # One-shot commands neither poll nor deliver on startup.
        config = dataclasses.replace(config, poll_interval=0, startup_delivery=False)

    handlers = {
        "watch": _watch,
        "get": _get,
        "test-send": _test_send,
        "configure": _configure,
    }
    return await handlers[args.command](args, config)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except SessionRelayError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
