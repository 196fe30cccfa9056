"""Application constants."""

USER_AGENT = "geocoder-stitch/1.0 (+geocoding; contact: configured-email)"
API_METHODS = ("autocomplete", "search", "reverse")
PREFERRED_LAYERS = ("venue", "address", "street", "intersection")
DEFAULT_SIZE = 4
DEFAULT_MAX_DISTANCE = 7500
DEFAULT_PRECISION_DIGITS = 4
# HERE "Public Transport" category and everything below it.
DEFAULT_TRANSIT_CATEGORY_PREFIXES = ("400-4100",)
BACKEND_TYPES = ("PELIAS", "HERE")
EXIT_SUCCESS = 0
EXIT_BACKEND_FAIL = 10
EXIT_CONFIG_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "request_id",
    "method",
    "backend",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "features_in",
    "features_out",
    "error_code",
    "message",
)
