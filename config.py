import os

# Route coverage (write path) and point lookup (read path) must share one
# precision or rides indexed at creation time are never found by search.
GEOHASH_PRECISION = int(os.environ.get("GEOHASH_PRECISION", "6"))
ROUTE_GEOHASH_PRECISION = GEOHASH_PRECISION
LOOKUP_GEOHASH_PRECISION = GEOHASH_PRECISION

DEFAULT_MAX_DEVIATION_KM = float(os.environ.get("DEFAULT_MAX_DEVIATION_KM", "5"))
DEFAULT_TIME_WINDOW_MINUTES = int(os.environ.get("DEFAULT_TIME_WINDOW_MINUTES", "30"))

RECOMMEND_RADIUS_KM = float(os.environ.get("RECOMMEND_RADIUS_KM", "10"))
RECOMMEND_HISTORY_SIZE = int(os.environ.get("RECOMMEND_HISTORY_SIZE", "5"))

# Off: the lookup set is always the centre cell plus its 8 neighbours.
SCALE_LOOKUP_RINGS = os.environ.get("SCALE_LOOKUP_RINGS", "0").lower() in ("1", "true", "yes")
MAX_LOOKUP_RINGS = int(os.environ.get("MAX_LOOKUP_RINGS", "8"))

SEARCH_TIMEOUT_SECONDS = float(os.environ.get("SEARCH_TIMEOUT_SECONDS", "10"))

NOMINATIM_URL = os.environ.get("NOMINATIM_URL", "https://nominatim.openstreetmap.org")
GEOCODER_USER_AGENT = os.environ.get("GEOCODER_USER_AGENT", "carpool-matching/0.1")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
