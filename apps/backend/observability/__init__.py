"""
Observability infrastructure for the Dev Tracker backend.

Provides:
- Structured logging with correlation IDs
- Sentry error tracking
- Prometheus metrics
"""

from .logging import get_logger, correlation_id_context, get_correlation_id
from .metrics import (
    metrics_registry,
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    business_events_total,
    notifications_created_total,
    emails_sent_total,
    side_effect_failures_total,
    digest_emails_total,
)

__all__ = [
    "get_logger",
    "correlation_id_context",
    "get_correlation_id",
    "metrics_registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "http_requests_in_progress",
    "business_events_total",
    "notifications_created_total",
    "emails_sent_total",
    "side_effect_failures_total",
    "digest_emails_total",
]
