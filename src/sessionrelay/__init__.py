"""sessionrelay - keep a session cookie cached and relay it to a collector on change."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sessionrelay")
except PackageNotFoundError:
    __version__ = "0+local"

from sessionrelay.config import SessionRelayConfig
from sessionrelay.configstore import ConfigStore, JsonFileConfigStore, MemoryConfigStore
from sessionrelay.exceptions import (
    AcquisitionError,
    ConfigUnavailableError,
    DeliveryError,
    DeliveryRejectedError,
    EmptyTokenError,
    RelayTransportError,
    SessionRelayConfigError,
    SessionRelayError,
)
from sessionrelay.models import (
    AcquisitionResponse,
    CacheEntry,
    CollectorPayload,
    DeliveryOutcome,
    DeliveryRecord,
    RelayConfig,
    TestDeliveryResponse,
    TokenOrigin,
)
from sessionrelay.service import SessionRelay
from sessionrelay.source import CookieFileSource, CookieJarSource, CredentialSource, ObservedCookieJar
from sessionrelay.state import CandidateOrigin, CandidateToken, CookieChange

__all__ = [
    "__version__",
    "AcquisitionError",
    "AcquisitionResponse",
    "CacheEntry",
    "CandidateOrigin",
    "CandidateToken",
    "CollectorPayload",
    "ConfigStore",
    "ConfigUnavailableError",
    "CookieChange",
    "CookieFileSource",
    "CookieJarSource",
    "CredentialSource",
    "DeliveryError",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryRejectedError",
    "EmptyTokenError",
    "JsonFileConfigStore",
    "MemoryConfigStore",
    "ObservedCookieJar",
    "RelayConfig",
    "RelayTransportError",
    "SessionRelay",
    "SessionRelayConfig",
    "SessionRelayConfigError",
    "SessionRelayError",
    "TestDeliveryResponse",
    "TokenOrigin",
]
