"""Normalized change events.

Host notifications, timer polls and startup warm-up are all converted into
:class:`CandidateToken` events before they reach the delivery guard.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CandidateOrigin(StrEnum):
    EVENT = "event"
    TIMER = "timer"
    STARTUP = "startup"
    REQUEST = "request"


class CookieChange(BaseModel):
    """A host-environment notification that a cookie was set or removed."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    domain: str
    name: str
    value: str = ""
    removed: bool = False

    @field_validator("value", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class CandidateToken(BaseModel):
    """A possibly-new token value that should be evaluated for delivery."""

    model_config = ConfigDict(frozen=True)

    value: str
    force: bool = False
    origin: CandidateOrigin
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("value")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("candidate token must be non-empty")
        return value
