"""
Prometheus metrics module for EdShare.

Service operations are timed by the @measure_operation decorator and
recorded here; booking-lock outcomes, search result sizes and notification
deliveries get their own domain counters.
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

service_operation_duration_seconds = Histogram(
    "edshare_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "edshare_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "edshare_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "edshare_booking_lock_total",
    "Booking slot lock outcomes",
    ["action", "outcome"],  # acquire|release x success|blocked|error|redis_unavailable|not_found
    registry=REGISTRY,
)

search_results_returned = Histogram(
    "edshare_search_results_returned",
    "Number of tutors matched by a proximity search (before pagination)",
    ["sort_by"],
    registry=REGISTRY,
    buckets=(0, 1, 5, 10, 25, 50, 100, 250),
)

notifications_total = Counter(
    "edshare_notifications_total",
    "Notification deliveries by channel and outcome",
    ["channel", "outcome"],  # email|sms x sent|failed|skipped
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def observe_search_results(sort_by: str, count: int) -> None:
        search_results_returned.labels(sort_by=sort_by).observe(max(count, 0))

    @staticmethod
    def record_notification(channel: str, outcome: str) -> None:
        notifications_total.labels(channel=channel, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
