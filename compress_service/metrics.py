"""
Process-wide request counters, exported in the Prometheus text format.

The collector owns its own CollectorRegistry instead of using the
prometheus_client global one, so each app (and each test) gets counters
that start at zero. prometheus_client counters lock internally, which makes
every increment atomic across worker threads.
"""
from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import CONTENT_TYPE_LATEST, generate_latest

REQUESTS_METRIC = "compress_requests"
BYTES_METRIC = "compress_bytes_processed"
FAILURES_METRIC = "compress_failures"
DURATION_METRIC = "compress_duration_seconds"


class MetricsCollector:
    """
    Counters for the compression endpoint.

    compress_requests_total counts every Transform call, successful or not.
    compress_bytes_processed_total adds the size of the JPEG returned by each
    successful call (output bytes, not input bytes).
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._requests = Counter(
            REQUESTS_METRIC,
            "Compression requests handled, successful or not",
            registry=self.registry,
        )
        self._bytes = Counter(
            BYTES_METRIC,
            "JPEG bytes returned by successful compression requests",
            registry=self.registry,
        )
        self._failures = Counter(
            FAILURES_METRIC,
            "Failed compression requests by error code",
            ["reason"],
            registry=self.registry,
        )
        self._duration = Histogram(
            DURATION_METRIC,
            "Time spent in the codec pipeline for successful requests",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )

    def record_request(self) -> None:
        self._requests.inc()

    def record_success(self, output_bytes: int, seconds: float) -> None:
        self._bytes.inc(output_bytes)
        self._duration.observe(seconds)

    def record_failure(self, reason: str) -> None:
        self._failures.labels(reason=reason).inc()

    def _sample(self, name: str, labels: dict = None) -> float:
        value = self.registry.get_sample_value(name, labels)
        return value if value is not None else 0.0

    @property
    def requests_total(self) -> int:
        return int(self._sample(REQUESTS_METRIC + "_total"))

    @property
    def bytes_processed_total(self) -> int:
        return int(self._sample(BYTES_METRIC + "_total"))

    def failures_total(self, reason: str) -> int:
        return int(self._sample(FAILURES_METRIC + "_total", {"reason": reason}))

    def exposition(self) -> bytes:
        """Render every metric, one sample per line, for a scraper."""
        return generate_latest(self.registry)
