from concurrent.futures import ThreadPoolExecutor

from prometheus_client.parser import text_string_to_metric_families

from compress_service.metrics import MetricsCollector


class TestMetricsCollector:
    """Counters and their text exposition."""

    def test_starts_at_zero(self, metrics):
        """1. A fresh collector reports nothing processed."""
        assert metrics.requests_total == 0
        assert metrics.bytes_processed_total == 0
        assert metrics.failures_total("DECODE_ERROR") == 0

    def test_collectors_are_independent(self):
        """2. Each collector has its own registry, no global state."""
        first, second = MetricsCollector(), MetricsCollector()
        first.record_request()
        assert first.requests_total == 1
        assert second.requests_total == 0

    def test_records(self, metrics):
        """3. Requests, bytes and failures accumulate separately."""
        metrics.record_request()
        metrics.record_success(1500, 0.02)
        metrics.record_request()
        metrics.record_failure("DECODE_ERROR")

        assert metrics.requests_total == 2
        assert metrics.bytes_processed_total == 1500
        assert metrics.failures_total("DECODE_ERROR") == 1

    def test_exposition_is_scrapeable(self, metrics):
        """4. The exposition parses as Prometheus text with the named counters."""
        metrics.record_request()
        metrics.record_success(321, 0.01)

        families = {f.name: f for f in text_string_to_metric_families(metrics.exposition().decode())}
        samples = {s.name: s.value for s in families["compress_requests"].samples}
        assert samples["compress_requests_total"] == 1
        samples = {s.name: s.value for s in families["compress_bytes_processed"].samples}
        assert samples["compress_bytes_processed_total"] == 321

    def test_concurrent_increments_are_not_lost(self, metrics):
        """5. Increments from many threads all land."""
        def work(_):
            for _ in range(200):
                metrics.record_request()
                metrics.record_success(3, 0.001)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(8)))

        assert metrics.requests_total == 1600
        assert metrics.bytes_processed_total == 4800
