"""Prometheus metrics for the processing queue and its workers."""

from prometheus_client import Counter, Gauge, Histogram

# State machine
queue_transitions_total = Counter(
    "sentiment_queue_transitions_total",
    "Processing queue rows entering each status",
    ["status"],
)

queue_pending_entries = Gauge(
    "sentiment_queue_pending_entries",
    "Pending rows seen by the last backlog check",
)

# Worker batches
worker_batch_duration_seconds = Histogram(
    "sentiment_worker_batch_duration_seconds",
    "Time spent claiming and scoring one batch",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

worker_items_total = Counter(
    "sentiment_worker_items_total",
    "Claimed rows by outcome",
    ["outcome"],
)

active_batches = Gauge("sentiment_worker_active_batches", "Batches currently being processed")
