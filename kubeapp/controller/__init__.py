"""Reconciliation engine for Application resources.

Submodules:
    history     -- HistoryManager: revision snapshots, dedup, retention cleanup.
    applier     -- ResourceApplier: create / merge-patch child resources.
    conditions  -- Condition transition bookkeeping.
    status      -- StatusAggregator: child statuses and Ready / Error conditions.
    retry       -- retry_on_conflict for optimistic-concurrency writes.
    reconciler  -- ApplicationReconciler: one full reconcile cycle.
    driver      -- ReconcileDriver: resync, per-key serialization, backoff.
"""

from kubeapp.controller.applier import ApplyResult, ResourceApplier
from kubeapp.controller.driver import ReconcileDriver
from kubeapp.controller.history import HistoryManager
from kubeapp.controller.reconciler import ApplicationReconciler, OutcomeAction, ReconcileOutcome
from kubeapp.controller.status import StatusAggregator

__all__ = [
    "ApplicationReconciler",
    "ApplyResult",
    "HistoryManager",
    "OutcomeAction",
    "ReconcileDriver",
    "ReconcileOutcome",
    "ResourceApplier",
    "StatusAggregator",
]
