"""
Prometheus metrics for monitoring the master loop, classifier calls and sheet writes.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total classifier requests)
    - Histogram: Observations bucketed by value (e.g., tick duration)
    - Gauge: Point-in-time value that can go up or down (e.g., pending messages)

Example:
    >>> from sync_leads.metrics import tick_duration, ticks_total
    >>> with tick_duration.time():
    ...     loop.tick()
    >>> ticks_total.labels(status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Master Loop Metrics
# =============================================================================

ticks_total = Counter(
    "leads_master_ticks_total",
    "Total number of master loop ticks",
    ["status"],
)
"""
Counter for master loop ticks.

Labels:
    status: success, failure or skipped (previous tick still running)
"""

tick_duration = Histogram(
    "leads_master_tick_duration_seconds",
    "Duration of master loop ticks in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float("inf")),
)

pending_messages = Gauge(
    "leads_pending_messages",
    "Number of unprocessed messages seen at the last drain check",
)

messages_processed = Counter(
    "leads_messages_processed_total",
    "Total messages taken off the unprocessed queue",
    ["direction", "outcome"],
)
"""
Counter for processed messages.

Labels:
    direction: incoming or outgoing
    outcome: processed, fallback (classifier sentinel) or failed (skipped for this tick)
"""

thread_decisions = Counter(
    "leads_thread_decisions_total",
    "Thread resolver decisions",
    ["decision"],
)
"""
Labels:
    decision: new, attached or threadless
"""

# =============================================================================
# Classifier Metrics
# =============================================================================

classifier_requests = Counter(
    "leads_classifier_requests_total",
    "Total LLM classification requests made",
    ["status_code"],
)

classifier_latency = Histogram(
    "leads_classifier_latency_seconds",
    "LLM classification request latency in seconds",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
)

classifier_fallbacks = Counter(
    "leads_classifier_fallbacks_total",
    "Classifier responses converted into a sentinel fallback record",
    ["reason"],
)
"""
Labels:
    reason: invalid_json, schema_mismatch or llm_request_failed
"""

# =============================================================================
# Sheet Sink Metrics
# =============================================================================

sheet_writes = Counter(
    "leads_sheet_writes_total",
    "Rows written to the client sheet",
    ["operation", "status"],
)
"""
Labels:
    operation: append or update
    status: success or failure
"""

sheet_api_latency = Histogram(
    "leads_sheet_api_latency_seconds",
    "Google Sheets API request latency in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

sheet_retries = Counter(
    "leads_sheet_retries_total",
    "Sheet API calls retried after a rate-limit response",
    ["operation"],
)

sheet_batch_size = Histogram(
    "leads_sheet_batch_size",
    "Number of row writes flushed per batch",
    buckets=(1, 2, 5, 10, 20, 50, float("inf")),
)

threads_pending_sync = Gauge(
    "leads_threads_pending_sync",
    "Threads whose root still needs a sheet sync after the last pass",
)
