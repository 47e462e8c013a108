"""Prometheus metrics for the reconciliation engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

reconcile_total = Counter(
    "kubeapp_reconcile_total",
    "Reconcile cycles by outcome",
    ["outcome"],
)

reconcile_duration_seconds = Histogram(
    "kubeapp_reconcile_duration_seconds",
    "Wall time of a reconcile cycle",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

revisions_created_total = Counter(
    "kubeapp_revisions_created_total",
    "Revision snapshots created",
)

revisions_pruned_total = Counter(
    "kubeapp_revisions_pruned_total",
    "Old revision snapshots deleted by retention cleanup",
)

revisions_deduplicated_total = Counter(
    "kubeapp_revisions_deduplicated_total",
    "Duplicate current revision snapshots deleted",
)

child_apply_errors_total = Counter(
    "kubeapp_child_apply_errors_total",
    "Per-template apply failures",
    ["reason"],
)

status_update_conflicts_total = Counter(
    "kubeapp_status_update_conflicts_total",
    "Status writes rejected with a resourceVersion conflict",
)
