import logging
import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)

_SCRUBBED = "[signature removed]"


def _sample_rate(env_var: str) -> float:
    raw_value = (os.getenv(env_var) or "").strip()
    if not raw_value:
        return 0.0
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("%s is not a valid float (got %r); tracing disabled", env_var, raw_value)
        return 0.0
    if not 0.0 <= value <= 1.0:
        clamped = min(max(value, 0.0), 1.0)
        logger.warning("%s must be between 0 and 1; using %.2f", env_var, clamped)
        return clamped
    return value


def _strip_signatures(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: _SCRUBBED if key == "dataUrl" else _strip_signatures(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_strip_signatures(item) for item in value]
    return value


def scrub_event(event: dict, hint: dict) -> dict:
    """Drop captured signature images from request bodies before upload."""
    request = event.get("request")
    if isinstance(request, dict) and "data" in request:
        request["data"] = _strip_signatures(request["data"])
    return event


def sentry_dsn() -> str | None:
    return (os.getenv("SENTRY_DSN") or "").strip() or None


def init_sentry() -> bool:
    dsn = sentry_dsn()
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        release=(os.getenv("SENTRY_RELEASE") or "").strip() or None,
        traces_sample_rate=_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        profiles_sample_rate=_sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
        send_default_pii=False,
        before_send=scrub_event,
    )
    logger.info("Initialized Sentry for environment %s", environment or "default")
    return True
