"""
Token Monitor Metrics - Prometheus metrics for the signal pipeline

Metrics are module-level singletons registered on the default registry and
served by the ``/metrics`` endpoint of the API.
"""

from prometheus_client import Counter, Gauge, Histogram

# ========================================
# Provider / Aggregation Metrics
# ========================================

signals_fetched_total = Counter(
    "tokenmonitor_signals_fetched_total",
    "Raw signals returned by provider adapters",
    ["platform", "kind"],
)

provider_errors_total = Counter(
    "tokenmonitor_provider_errors_total",
    "Provider adapter failures caught by the aggregator",
    ["platform", "kind"],
)

signals_filtered_total = Counter(
    "tokenmonitor_signals_filtered_total",
    "Signals dropped by the aggregator filter",
    ["reason"],
)

signals_merged_total = Counter(
    "tokenmonitor_signals_merged_total",
    "Multi-platform signal groups merged into one signal",
)

signals_emitted_total = Counter(
    "tokenmonitor_signals_emitted_total",
    "Signals that passed merge and filter",
    ["kind"],
)

# ========================================
# Advisory Metrics
# ========================================

advisory_requests_total = Counter(
    "tokenmonitor_advisory_requests_total",
    "Advisory backend invocations",
    ["provider", "result"],
)

advisory_fallbacks_total = Counter(
    "tokenmonitor_advisory_fallbacks_total",
    "Synthetic fallback recommendations produced after total backend failure",
)

advisory_latency_seconds = Histogram(
    "tokenmonitor_advisory_latency_seconds",
    "Time spent in one advisory backend call",
    ["provider"],
    buckets=[0.01, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

# ========================================
# Orchestrator Metrics
# ========================================

scan_cycles_total = Counter(
    "tokenmonitor_scan_cycles_total",
    "Completed scan cycles",
    ["status"],
)

scan_cycle_duration_seconds = Histogram(
    "tokenmonitor_scan_cycle_duration_seconds",
    "Wall time of one scan cycle",
    buckets=[1, 5, 10, 30, 60, 120, 300],
)

notifications_sent_total = Counter(
    "tokenmonitor_notifications_sent_total",
    "Recommendations handed to the notifier",
    ["recommendation"],
)

notification_failures_total = Counter(
    "tokenmonitor_notification_failures_total",
    "Notifier send failures",
)

monitor_running = Gauge(
    "tokenmonitor_monitor_running",
    "1 while the scheduled monitor is running",
)
