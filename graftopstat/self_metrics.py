"""Self-monitoring metrics for the collector, served by prometheus_client."""
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server
import logging

from graftopstat.config import SelfMetricsConfig

logger = logging.getLogger(__name__)


class SelfMetrics:
    """Counters describing the exporter itself, kept on a private registry."""

    def __init__(self, registry=None, prefix="graftopstat_"):
        if registry is None:
            registry = CollectorRegistry()
        self.registry = registry

        self.cycles_total = Counter(
            f"{prefix}collection_cycles_total",
            "Total number of completed collection cycles",
            registry=registry
        )

        self.cycle_duration_seconds = Histogram(
            f"{prefix}collection_duration_seconds",
            "Duration of each collection cycle in seconds",
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry
        )

        self.command_failures_total = Counter(
            f"{prefix}command_failures_total",
            "Total number of failed source command runs",
            ["source"],
            registry=registry
        )

        self.parse_errors_total = Counter(
            f"{prefix}parse_errors_total",
            "Total number of lines that failed to parse",
            ["source"],
            registry=registry
        )

        self.snapshot_records = Gauge(
            f"{prefix}snapshot_records",
            "Number of records in the last published snapshot",
            registry=registry
        )

    def record_cycle(self, duration: float, records: int):
        """Record a finished collection cycle."""
        self.cycles_total.inc()
        self.cycle_duration_seconds.observe(duration)
        self.snapshot_records.set(records)

    def record_command_failure(self, source: str):
        self.command_failures_total.labels(source=source).inc()

    def record_parse_errors(self, source: str, count: int):
        if count:
            self.parse_errors_total.labels(source=source).inc(count)

    def start_server(self, config: SelfMetricsConfig):
        """Start the self-metrics HTTP listener."""
        try:
            start_http_server(
                config.port,
                addr=config.bind_address,
                registry=self.registry
            )
            logger.info(
                f"Self-metrics listening on "
                f"{config.bind_address}:{config.port}/metrics"
            )
        except Exception as e:
            logger.error(f"Failed to start self-metrics HTTP server: {e}")
            raise
