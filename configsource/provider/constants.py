"""Constants for document providers."""

# HTTP status code boundaries
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 299

DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "configsource/0.1"

# Scheme assumed for locations without a "<scheme>:" prefix
DEFAULT_SCHEME = "file"
