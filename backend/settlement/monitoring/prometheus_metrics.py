"""
Prometheus metrics module for the settlement engine.

Service operation timings come from the @measure_operation decorator; batch
and notification counters are recorded by the batch orchestrator and the
notification dispatcher.
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
    "settlement_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 60.0),
)

service_operations_total = Counter(
    "settlement_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "settlement_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

batch_runs_total = Counter(
    "settlement_batch_runs_total",
    "Batch runs by outcome (success, partial, fetch_failed)",
    ["batch", "outcome"],
    registry=REGISTRY,
)

batch_bookings_total = Counter(
    "settlement_batch_bookings_total",
    "Bookings handled by batch runs, by result (processed, skipped, error)",
    ["batch", "result"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "settlement_notifications_total",
    "Notification deliveries by transition and outcome (sent, skipped, failed)",
    ["transition", "outcome"],
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
            service: Service name (e.g., 'BatchProcessingService')
            operation: Operation/method name (e.g., 'run_capture_batch')
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
    def record_batch_run(batch: str, outcome: str) -> None:
        batch_runs_total.labels(batch=batch, outcome=outcome).inc()

    @staticmethod
    def record_batch_booking(batch: str, result: str, count: int = 1) -> None:
        if count:
            batch_bookings_total.labels(batch=batch, result=result).inc(count)

    @staticmethod
    def record_notification(transition: str, outcome: str) -> None:
        notifications_total.labels(transition=transition, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
