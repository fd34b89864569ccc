"""
Prometheus metrics for onboarding workflow monitoring.

Tracks:
- HTTP requests by resolved database environment
- Application workflow transitions and their outcomes
- Completion/validation evaluations
- Database connection failures per environment
- Outbox queue depth and publishing
"""
import time

from prometheus_client import Counter, Gauge, Histogram

# Request metrics
http_requests_total = Counter(
    "onboarding_http_requests_total",
    "Total HTTP requests by resolved database environment",
    ["environment", "status_code"],
)

http_request_duration_seconds = Histogram(
    "onboarding_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["environment"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Workflow metrics
application_transitions_total = Counter(
    "application_transitions_total",
    "Application status transition attempts",
    ["transition", "outcome"],  # outcome: success, invalid_transition, forbidden, ...
)

application_evaluations_total = Counter(
    "application_evaluations_total",
    "Completion/validation evaluations",
    ["result"],  # valid, invalid
)

# Environment metrics
global_environment_changes_total = Counter(
    "global_environment_changes_total",
    "Changes of the global database environment",
    ["environment"],
)

# Database metrics
database_connection_failures_total = Counter(
    "database_connection_failures_total",
    "Database connection failures",
    ["environment", "reason"],  # reason: not_configured, unreachable
)

# Outbox metrics
outbox_queue_depth = Gauge(
    "outbox_queue_depth",
    "Number of unpublished events in outbox",
    ["environment"],
)

outbox_events_published_total = Counter(
    "outbox_events_published_total",
    "Total outbox events published",
    ["event_type"],
)

outbox_processing_duration_seconds = Histogram(
    "outbox_processing_duration_seconds",
    "Outbox batch processing duration in seconds",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

outbox_last_run_timestamp = Gauge(
    "outbox_last_run_timestamp",
    "Timestamp of last outbox batch",
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_request(environment: str, status_code: int, duration_seconds: float) -> None:
        """Record an HTTP request."""
        http_requests_total.labels(environment=environment, status_code=str(status_code)).inc()
        http_request_duration_seconds.labels(environment=environment).observe(duration_seconds)

    @staticmethod
    def record_transition(transition: str, outcome: str) -> None:
        """Record a workflow transition attempt."""
        application_transitions_total.labels(transition=transition, outcome=outcome).inc()

    @staticmethod
    def record_evaluation(is_valid: bool) -> None:
        """Record a completion/validation evaluation."""
        application_evaluations_total.labels(result="valid" if is_valid else "invalid").inc()

    @staticmethod
    def record_environment_change(environment: str) -> None:
        """Record a global environment change."""
        global_environment_changes_total.labels(environment=environment).inc()

    @staticmethod
    def record_connection_failure(environment: str, reason: str) -> None:
        """Record a database connection failure."""
        database_connection_failures_total.labels(environment=environment, reason=reason).inc()

    @staticmethod
    def set_outbox_queue_depth(environment: str, depth: int) -> None:
        """Set outbox queue depth."""
        outbox_queue_depth.labels(environment=environment).set(depth)

    @staticmethod
    def record_outbox_event_published(event_type: str) -> None:
        """Record outbox event published."""
        outbox_events_published_total.labels(event_type=event_type).inc()

    @staticmethod
    def record_outbox_batch(duration_seconds: float) -> None:
        """Record outbox batch duration."""
        outbox_processing_duration_seconds.observe(duration_seconds)
        outbox_last_run_timestamp.set(time.time())


# Export singleton instance
metrics = MetricsCollector()
