"""Prometheus metrics for LLM calls, chat and analysis."""

from prometheus_client import Counter, Histogram

# LLM vendor metrics
llm_latency_ms = Histogram(
    "llm_latency_ms",
    "LLM vendor call latency in milliseconds",
    ["operation", "outcome"],
    buckets=[100, 250, 500, 1000, 2000, 4000, 8000, 16000, 32000, 60000],
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Total LLM vendor call failures",
    ["operation", "reason"],
)

# Domain metrics
chat_turns_total = Counter(
    "chat_turns_total",
    "Total persisted chat turns",
    ["kind"],
)

document_versions_total = Counter(
    "document_versions_total",
    "Total appended document versions",
    ["source"],
)

analyses_total = Counter(
    "analyses_total",
    "Total analysis attempts",
    ["kind", "outcome"],
)

rate_limited_total = Counter(
    "rate_limited_total",
    "Total requests rejected by the per-user throttle",
    ["bucket"],
)


class PrometheusLLMMetrics:
    """Prometheus-based LLM call metrics implementation."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record vendor call latency."""
        llm_latency_ms.labels(operation=operation, outcome=outcome).observe(latency_ms)

    def inc_error(self, operation: str, reason: str) -> None:
        """Increment error counter."""
        llm_errors_total.labels(operation=operation, reason=reason).inc()


class PrometheusDomainMetrics:
    """Counters for chat turns, versions, analyses and throttling."""

    def inc_chat_turn(self, kind: str) -> None:
        chat_turns_total.labels(kind=kind).inc()

    def inc_version(self, source: str) -> None:
        document_versions_total.labels(source=source).inc()

    def inc_analysis(self, kind: str, outcome: str) -> None:
        analyses_total.labels(kind=kind, outcome=outcome).inc()

    def inc_rate_limited(self, bucket: str) -> None:
        rate_limited_total.labels(bucket=bucket).inc()
