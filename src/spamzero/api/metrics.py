from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import functools


class MetricsManager:
    """
    Centralized Prometheus metrics manager for the SpamZero API.

    Attributes
    ----------
    registry : CollectorRegistry
        Prometheus registry that holds all defined metrics. If not provided,
        a new isolated registry is created.
    requests : Counter
        Total HTTP requests served, labeled by route, method and status code.
    request_time : Histogram
        End-to-end API request latency, labeled by route and method.
    payload_size : Histogram
        Distribution of incoming request payload sizes, in bytes.
    upstream_time : Histogram
        Latency of calls to the remote spam classifier, in seconds.
    history_operations : Counter
        History store operations, labeled by operation (insert, list,
        delete, delete_all) and outcome (ok, invalid, not_found, error).
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry: CollectorRegistry = registry or CollectorRegistry()

        self.requests = Counter(
            "api_requests_total",
            "Total requests",
            ["route", "method", "status"],
            registry=self.registry,
        )

        self.request_time: Histogram = Histogram(
            "request_latency_seconds",
            "End-to-end request latency",
            ["route", "method"],
            buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
            registry=self.registry,
        )

        self.payload_size: Histogram = Histogram(
            "request_payload_bytes",
            "Payload size in bytes",
            buckets=(128, 512, 1024, 4096, 16384, 65536),
            registry=self.registry,
        )

        # Remote inference is the slow part of /predict; Hugging Face Spaces
        # may cold-start, hence the long tail buckets.
        self.upstream_time: Histogram = Histogram(
            "upstream_latency_seconds",
            "Latency of remote classifier calls",
            buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60),
            registry=self.registry,
        )

        self.history_operations = Counter(
            "history_operations_total",
            "History store operations",
            ["operation", "outcome"],
            registry=self.registry,
        )

    def render(self) -> bytes:
        """Render all registered metrics in Prometheus' text exposition format."""
        return generate_latest(self.registry)


@functools.cache
def get_metrics_manager() -> MetricsManager:
    """
    Retrieve a cached global instance of the MetricsManager.

    Tests override this dependency to get a clean registry per test.
    """
    return MetricsManager()
