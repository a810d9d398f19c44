"""Delivery bookkeeping, relay settings and the collector wire payload."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sessionrelay._constants import PAYLOAD_KEY, PAYLOAD_SERVICE
from sessionrelay.config import parse_bool


class DeliveryOutcome(StrEnum):
    """Result of a guarded delivery attempt.

    ``DUPLICATE`` and ``IN_FLIGHT`` are deliberate no-ops, not failures.
    """

    DELIVERED = "delivered"
    DUPLICATE = "duplicate"
    IN_FLIGHT = "in_flight"
    EMPTY = "empty"
    FAILED = "failed"


class DeliveryRecord(BaseModel):
    """The most recent confirmed delivery, used only for deduplication."""

    model_config = ConfigDict(frozen=True)

    last_delivered_token: str | None = None
    last_delivered_at_millis: int = 0

    @field_validator("last_delivered_token", mode="before")
    @classmethod
    def _empty_is_none(cls, value: Any) -> Any:
        return value or None

    @field_validator("last_delivered_at_millis", mode="before")
    @classmethod
    def _coerce_millis(cls, value: Any) -> int:
        if value is None or value == "":
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class RelayConfig(BaseModel):
    """Collector settings, read fresh from the config store on every delivery."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    endpoint: str = ""
    auth_token: str = ""
    insecure: bool = False

    @field_validator("endpoint", "auth_token", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("insecure", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        # Hand-edited state files may hold "false"; unknown strings keep TLS on.
        if isinstance(value, str):
            return parse_bool(value, False)
        return bool(value)


class CollectorPayload(BaseModel):
    """JSON body POSTed to the collector endpoint."""

    model_config = ConfigDict(frozen=True)

    service: str = PAYLOAD_SERVICE
    key: str = PAYLOAD_KEY
    value: str
    ts: int = Field(..., description="Epoch milliseconds at send time")
