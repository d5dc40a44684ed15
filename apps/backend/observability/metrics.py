"""
Prometheus metrics collection for the Dev Tracker backend.

Provides RED metrics (Rate, Errors, Duration) for the HTTP surface plus
counters for notifications, emails and scheduled digests.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    REGISTRY,
)

# Use the default registry
metrics_registry = REGISTRY

# HTTP Metrics (RED - Rate, Errors, Duration)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=metrics_registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
    registry=metrics_registry,
)

# Business Metrics
business_events_total = Counter(
    "business_events_total",
    "Total business events",
    ["event_type"],  # task_created, comment_created, message_sent, invitation_sent, ...
    registry=metrics_registry,
)

notifications_created_total = Counter(
    "notifications_created_total",
    "In-app notifications written",
    ["type"],
    registry=metrics_registry,
)

emails_sent_total = Counter(
    "emails_sent_total",
    "Outbound emails by kind and outcome",
    ["kind", "outcome"],  # outcome: sent, demo, failed
    registry=metrics_registry,
)

side_effect_failures_total = Counter(
    "side_effect_failures_total",
    "Side effects that failed after their parent write committed",
    ["name"],
    registry=metrics_registry,
)

digest_emails_total = Counter(
    "digest_emails_total",
    "Digest job results per recipient",
    ["job", "outcome"],  # outcome: success, failed, skipped
    registry=metrics_registry,
)

chat_subscribers_gauge = Gauge(
    "chat_subscribers_gauge",
    "Open chat change-feed subscriptions",
    registry=metrics_registry,
)
