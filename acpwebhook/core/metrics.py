"""Prometheus metrics for admission reviews and quota usage."""

from prometheus_client import Counter, Gauge, Histogram

review_total = Counter(
    "acp_admission_reviews_total",
    "Total number of admission reviews",
    ["operation", "result"],
)

review_duration = Histogram(
    "acp_admission_review_duration_seconds",
    "Time spent reviewing an admission request",
)

quota_used = Gauge("acp_quota_used", "Policy bindings currently reserved")

quota_capacity = Gauge("acp_quota_capacity", "Maximum number of policy bindings")

middleware_writes = Counter(
    "acp_middleware_writes_total",
    "Total number of middleware writes",
    ["action"],
)
