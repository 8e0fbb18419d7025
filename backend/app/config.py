import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_positive_int(env_var: str, default: int) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default

    if value <= 0:
        logger.warning("%s must be positive; defaulting to %d", env_var, default)
        return default

    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

# In-memory match sessions
MATCH_SESSION_TTL_SECONDS = _parse_positive_int("MATCH_SESSION_TTL_SECONDS", 6 * 60 * 60)
MAX_MATCH_SESSIONS = _parse_positive_int("MAX_MATCH_SESSIONS", 500)

MATCH_RATE_LIMIT = (os.getenv("MATCH_RATE_LIMIT") or "120/minute").strip()

# Setup and report limits
MAX_ROSTER_SIZE = _parse_positive_int("MAX_ROSTER_SIZE", 12)
MAX_NAME_LENGTH = _parse_positive_int("MAX_NAME_LENGTH", 60)
MAX_SIGNATURE_BYTES = _parse_positive_int("MAX_SIGNATURE_BYTES", 512 * 1024)


def rate_limits_disabled() -> bool:
    return (os.getenv("DISABLE_MATCH_RATE_LIMITS") or "").lower() == "true"
