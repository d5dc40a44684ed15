"""
Sentry error tracking integration.

Disabled unless SENTRY_DSN is set.
"""

import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .logging import get_correlation_id, get_logger

logger = get_logger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry. Returns True when it was enabled.

    Environment variables:
    - SENTRY_DSN: Sentry Data Source Name (required)
    - SENTRY_ENVIRONMENT: falls back to ENVIRONMENT
    - SENTRY_RELEASE: release identifier (e.g. git SHA)
    - SENTRY_TRACES_SAMPLE_RATE: 0.0-1.0
    - SENTRY_ENABLE: "false" disables even with a DSN
    """
    sentry_dsn = os.getenv("SENTRY_DSN")
    sentry_enable = os.getenv("SENTRY_ENABLE", "true").lower() == "true"

    if not sentry_dsn or not sentry_enable:
        logger.info("Sentry is disabled (SENTRY_DSN not set or SENTRY_ENABLE=false)")
        return False

    environment = os.getenv("SENTRY_ENVIRONMENT") or os.getenv("ENVIRONMENT", "development")
    release = os.getenv("SENTRY_RELEASE") or "unknown"
    traces_sample_rate = float(
        os.getenv("SENTRY_TRACES_SAMPLE_RATE", "1.0" if environment == "production" else "0.1")
    )

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=environment,
        release=f"dev-tracker-backend@{release}",
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=before_send_hook,
    )

    logger.info("Sentry initialized", extra={"environment": environment, "release": release})
    return True


def before_send_hook(event, hint):
    """Drop client disconnects and tag events with the correlation ID."""
    if "exception" in event:
        for exc_value in event["exception"].get("values", []):
            if "client disconnected" in str(exc_value.get("value", "")).lower():
                return None

    correlation_id = get_correlation_id()
    if correlation_id:
        event.setdefault("tags", {})["correlation_id"] = correlation_id

    return event


def capture_exception(exc: Exception, **tags) -> None:
    """Report a handled exception (side-effect failures, digest errors) with tags."""
    with sentry_sdk.new_scope() as scope:
        correlation_id = get_correlation_id()
        if correlation_id:
            scope.set_tag("correlation_id", correlation_id)
        for key, value in tags.items():
            scope.set_tag(key, value)
        sentry_sdk.capture_exception(exc)
