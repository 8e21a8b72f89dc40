"""
Prometheus metrics module for the tutoring platform.

Exposes service-operation timings recorded by @measure_operation plus a few
scheduling-specific counters (locks, calendar sync, booking transitions).
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "tutoring_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

service_operation_duration_seconds = Histogram(
    "tutoring_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutoring_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutoring_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

scheduling_lock_total = Counter(
    "tutoring_scheduling_lock_total",
    "Per-tutor scheduling lock operations",
    ["action", "outcome"],  # outcome: success|blocked|error|local|expired
    registry=REGISTRY,
)

calendar_sync_total = Counter(
    "tutoring_calendar_sync_total",
    "Calendar notifier calls by outcome",
    ["operation", "outcome"],  # create|delete x success|skipped|error
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "tutoring_booking_transitions_total",
    "Booking status transitions",
    ["to_status"],
    registry=REGISTRY,
)

class PrometheusMetrics:
    """Records scheduling metrics into the app registry and renders the scrape payload."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record one call made through @measure_operation.

        Args:
            service: Service class name (e.g. 'BookingService')
            operation: Operation name (e.g. 'create_booking')
            duration: Wall time in seconds
            status: 'success', 'rejected' (domain rule) or 'error'
            error_type: Error code or exception class when not successful
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status != "success" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_scheduling_lock(action: str, outcome: str) -> None:
        scheduling_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_calendar_sync(operation: str, outcome: str) -> None:
        calendar_sync_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_booking_transition(to_status: str) -> None:
        booking_transitions_total.labels(to_status=to_status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

prometheus_metrics = PrometheusMetrics()
