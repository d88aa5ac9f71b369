"""Header names and limits used by the HTTP layer."""

REQUEST_ID_HEADER = "X-Request-ID"
LOCATION_HEADER = "Location"

MAX_USER_AGENT_LENGTH = 200
UNKNOWN_CLIENT = "unknown"
