"""Process configuration for sessionrelay.

Relay settings that an operator edits at runtime (collector endpoint,
auth token) live in the :class:`~sessionrelay.configstore.ConfigStore`
instead, so edits take effect without a restart.
"""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from sessionrelay._constants import (
    COOKIE_NAME,
    DEFAULT_ENDPOINT,
    DEFAULT_POLL_FAILURE_WARN_EVERY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    TARGET_DOMAIN,
    TARGET_URL,
)
from sessionrelay.exceptions import SessionRelayConfigError


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse an env-style flag (``1/true/yes/on`` or ``0/false/no/off``)."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise SessionRelayConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class SessionRelayConfig:
    """Relay process configuration.

    Parameters
    ----------
    target_domain : str
        Cookie domain to watch. Subdomains (``www.instagram.com``,
        ``.instagram.com``) match as well.
    cookie_name : str
        Exact cookie name carrying the session token.
    target_url : str
        URL used to look the cookie up in a cookie jar.
    poll_interval : float
        Seconds between credential source polls. ``0`` disables the
        timer channel.
    poll_failure_warn_every : int
        Consecutive poll failures are logged at WARNING on the first
        failure and then once every this many failures.
    request_timeout : float
        Total timeout in seconds for a single delivery POST.
    default_endpoint : str
        Collector endpoint used (and persisted) when none is configured.
    startup_delivery : bool
        Emit a candidate for the warmed token when the relay starts.
    """

    target_domain: str = TARGET_DOMAIN
    cookie_name: str = COOKIE_NAME
    target_url: str = TARGET_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_failure_warn_every: int = DEFAULT_POLL_FAILURE_WARN_EVERY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    default_endpoint: str = DEFAULT_ENDPOINT
    startup_delivery: bool = True

    def __post_init__(self) -> None:
        if not self.target_domain.strip(".").strip():
            raise SessionRelayConfigError("target_domain must be non-empty")
        if not self.cookie_name:
            raise SessionRelayConfigError("cookie_name must be non-empty")
        if self.poll_interval < 0:
            raise SessionRelayConfigError(f"poll_interval must be >= 0, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise SessionRelayConfigError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.poll_failure_warn_every < 1:
            raise SessionRelayConfigError("poll_failure_warn_every must be >= 1")

    @classmethod
    def from_env(cls, **overrides: Any) -> SessionRelayConfig:
        """Create configuration from ``SESSIONRELAY_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "SESSIONRELAY_DOMAIN": "target_domain",
            "SESSIONRELAY_COOKIE_NAME": "cookie_name",
            "SESSIONRELAY_TARGET_URL": "target_url",
            "SESSIONRELAY_DEFAULT_ENDPOINT": "default_endpoint",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val.strip()

        _ENV_FLOAT_MAP = {
            "SESSIONRELAY_POLL_INTERVAL": "poll_interval",
            "SESSIONRELAY_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        warn_env = env.get("SESSIONRELAY_POLL_WARN_EVERY")
        if warn_env is not None and "poll_failure_warn_every" not in overrides:
            config_kwargs["poll_failure_warn_every"] = int(_env_float("SESSIONRELAY_POLL_WARN_EVERY", warn_env))

        if "startup_delivery" not in overrides:
            config_kwargs["startup_delivery"] = parse_bool(env.get("SESSIONRELAY_STARTUP_DELIVERY"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
