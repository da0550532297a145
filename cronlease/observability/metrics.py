"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from cronlease.constants import (
    METRIC_HEARTBEATS,
    METRIC_JOB_RUN_DURATION,
    METRIC_JOB_RUNS,
    METRIC_JOBS_BY_STATUS,
    METRIC_JOBS_CLAIMED,
    METRIC_LEASES_RECLAIMED,
    METRIC_PREEMPT_CONTENTION,
    METRIC_RELEASES_REJECTED,
    METRIC_SCHEDULE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the leasing protocol.

    Collects metrics for:
    - Claims and claim contention
    - Job runs and their duration
    - Heartbeats, rejected releases and reclaimed leases
    - Schedule evaluation failures
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs claimed",
            ["worker_id"],
            registry=self._registry,
        )

        self.preempt_contention = Counter(
            METRIC_PREEMPT_CONTENTION,
            "Claim attempts that exhausted their retry budget",
            ["worker_id"],
            registry=self._registry,
        )

        self.job_runs = Counter(
            METRIC_JOB_RUNS,
            "Total number of job runs",
            ["executor", "status"],
            registry=self._registry,
        )

        self.job_run_duration = Histogram(
            METRIC_JOB_RUN_DURATION,
            "Job run duration in seconds",
            ["executor", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
            registry=self._registry,
        )

        self.leases_reclaimed = Counter(
            METRIC_LEASES_RECLAIMED,
            "Total number of stale leases reclaimed",
            registry=self._registry,
        )

        self.heartbeats = Counter(
            METRIC_HEARTBEATS,
            "Total number of heartbeats by result",
            ["result"],
            registry=self._registry,
        )

        self.releases_rejected = Counter(
            METRIC_RELEASES_REJECTED,
            "Releases dropped because the lease was no longer owned",
            registry=self._registry,
        )

        self.schedule_errors = Counter(
            METRIC_SCHEDULE_ERRORS,
            "Schedule expressions that could not be evaluated",
            ["executor"],
            registry=self._registry,
        )

        self.jobs_by_status = Gauge(
            METRIC_JOBS_BY_STATUS,
            "Number of jobs per status",
            ["status"],
            registry=self._registry,
        )

    def record_claim(self, worker_id: str) -> None:
        """Record a successful claim."""
        self.jobs_claimed.labels(worker_id=worker_id).inc()

    def record_contention(self, worker_id: str) -> None:
        """Record an exhausted claim retry budget."""
        self.preempt_contention.labels(worker_id=worker_id).inc()

    def record_job_run(
        self,
        executor: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a finished job run."""
        self.job_runs.labels(executor=executor, status=status).inc()
        self.job_run_duration.labels(executor=executor, status=status).observe(
            duration_seconds
        )

    def record_heartbeat(self, result: str) -> None:
        """Record a heartbeat outcome."""
        self.heartbeats.labels(result=result).inc()

    def record_reclaimed(self, count: int) -> None:
        """Record reclaimed leases."""
        if count > 0:
            self.leases_reclaimed.inc(count)

    def record_release_rejected(self) -> None:
        """Record a release dropped after losing ownership."""
        self.releases_rejected.inc()

    def record_schedule_error(self, executor: str) -> None:
        """Record a schedule evaluation failure."""
        self.schedule_errors.labels(executor=executor).inc()

    def update_job_counts(self, stats: dict[str, int]) -> None:
        """Update the per-status job gauge."""
        for status, count in stats.items():
            self.jobs_by_status.labels(status=status).set(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def serve_metrics(port: int | None) -> None:
    """
    Expose metrics over HTTP for processes without the admin API.

    Args:
        port: Listening port; nothing is started when None.
    """
    if port is not None:
        start_http_server(port)


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
