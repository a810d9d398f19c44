"""Structured results returned to external callers (UI, test triggers)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class AcquisitionResponse(BaseModel):
    """Answer to a "give me the current token" request."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    token: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, token: str) -> AcquisitionResponse:
        return cls(ok=True, token=token)

    @classmethod
    def failure(cls, error: str) -> AcquisitionResponse:
        return cls(ok=False, error=error)


class TestDeliveryResponse(BaseModel):
    """Answer to a "force-send the current token now" request."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    ok: bool
    error: str | None = None
