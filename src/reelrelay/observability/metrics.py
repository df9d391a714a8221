"""Service Prometheus metrics."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

reconcile_passes_total = Counter(
    "reelrelay_reconcile_passes_total",
    "Endpoint registry reconciliation passes by outcome",
    ["outcome"],
)

mounted_endpoints = Gauge(
    "reelrelay_mounted_endpoints",
    "Inbound trigger endpoints currently mounted",
)

job_transitions_total = Counter(
    "reelrelay_job_transitions_total",
    "Generation job state transitions by resulting status",
    ["status"],
)

fanout_deliveries_total = Counter(
    "reelrelay_fanout_deliveries_total",
    "Automation subscriber deliveries by outcome",
    ["outcome"],
)

__all__ = [
    "reconcile_passes_total",
    "mounted_endpoints",
    "job_transitions_total",
    "fanout_deliveries_total",
]
