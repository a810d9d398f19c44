"""Internal constants shared across the library."""

TARGET_DOMAIN = "instagram.com"
TARGET_URL = "https://www.instagram.com/"
COOKIE_NAME = "sessionid"

# Collector payload identity.
PAYLOAD_SERVICE = "instagram"
PAYLOAD_KEY = "sessionid"

DEFAULT_ENDPOINT = "http://127.0.0.1:8080/api/collect-session"
LEGACY_ENDPOINT_PATH = "/collect-session"
CURRENT_ENDPOINT_PATH = "/api/collect-session"

DEFAULT_POLL_INTERVAL: float = 5 * 60
DEFAULT_REQUEST_TIMEOUT: float = 15.0
DEFAULT_POLL_FAILURE_WARN_EVERY = 12

# ------------------------------------------------------------------
# Persisted store keys
# ------------------------------------------------------------------

KEY_CACHED_TOKEN = "cached_token"
KEY_LAST_DELIVERED_TOKEN = "last_delivered_token"
KEY_LAST_DELIVERED_AT = "last_delivered_at_millis"
KEY_RELAY_ENDPOINT = "relay_endpoint"
KEY_RELAY_AUTH_TOKEN = "relay_auth_token"
KEY_RELAY_INSECURE = "relay_insecure"
