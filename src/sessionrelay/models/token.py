"""Cached session token model."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator


class TokenOrigin(StrEnum):
    """Where the in-memory copy of the token was last filled from."""

    MEMORY = "memory"
    PERSISTED = "persisted"


class CacheEntry(BaseModel):
    """Last-known credential value.

    Parameters
    ----------
    token : str
        The session token. Never empty.
    origin : TokenOrigin
        ``MEMORY`` when the value was observed in this process,
        ``PERSISTED`` when it was recovered from the config store.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    origin: TokenOrigin = TokenOrigin.MEMORY

    @field_validator("token")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("token must be non-empty")
        return value
