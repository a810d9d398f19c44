"""Data models for sessionrelay."""

from sessionrelay.models.delivery import CollectorPayload, DeliveryOutcome, DeliveryRecord, RelayConfig
from sessionrelay.models.responses import AcquisitionResponse, TestDeliveryResponse
from sessionrelay.models.token import CacheEntry, TokenOrigin

__all__ = [
    "AcquisitionResponse",
    "CacheEntry",
    "CollectorPayload",
    "DeliveryOutcome",
    "DeliveryRecord",
    "RelayConfig",
    "TestDeliveryResponse",
    "TokenOrigin",
]
