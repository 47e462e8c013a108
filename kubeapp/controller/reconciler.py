"""Application reconciler.

One call to :meth:`ApplicationReconciler.reconcile` runs a full cycle for a
single Application:

    load → ensure current revision → apply templates → aggregate status
         → persist status (retry on conflict) → prune old revisions

The reconciler keeps no per-Application state between calls.  Everything a
cycle needs comes from the store, so redelivering the same key is always
safe.  Only two failures are fatal and raised as ReconcileError: the
Application cannot be read, or its status cannot be written.  Everything
else is reported through the Error condition or the returned outcome.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import uuid4

import structlog

from kubeapp.controller.applier import ResourceApplier
from kubeapp.controller.history import HistoryManager
from kubeapp.controller.retry import DEFAULT_RETRY, Backoff, retry_on_conflict
from kubeapp.controller.status import StatusAggregator
from kubeapp.errors import ConflictError, KubeAppError, NotFoundError, ReconcileError, StoreError
from kubeapp.models.application import (
    API_VERSION,
    KIND,
    Application,
    ApplicationStatus,
    NamespacedName,
)
from kubeapp.models.revision import RevisionSnapshot
from kubeapp.observability.metrics import (
    reconcile_duration_seconds,
    reconcile_total,
    status_update_conflicts_total,
)
from kubeapp.store.base import ObjectStore

_logger = structlog.get_logger(component="controller.reconciler")


class OutcomeAction(StrEnum):
    RECONCILED = "reconciled"
    NOT_FOUND = "not_found"
    DELETING = "deleting"


@dataclass
class ReconcileOutcome:
    """What a successful cycle did.  Fatal failures raise instead."""

    key: str
    action: OutcomeAction
    current_revision: str | None = None
    status_updated: bool = False
    pruned_revisions: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    history_error: str | None = None
    cleanup_error: str | None = None


class ApplicationReconciler:
    """Drives Applications toward their declared child resources."""

    def __init__(
        self,
        store: ObjectStore,
        history: HistoryManager | None = None,
        applier: ResourceApplier | None = None,
        aggregator: StatusAggregator | None = None,
        status_retry: Backoff = DEFAULT_RETRY,
    ) -> None:
        self._store = store
        self._history = history or HistoryManager(store)
        self._applier = applier or ResourceApplier(store)
        self._aggregator = aggregator or StatusAggregator()
        self._status_retry = status_retry

    async def reconcile(self, key: NamespacedName | str) -> ReconcileOutcome:
        """Run one reconcile cycle for *key* (``namespace/name``).

        Raises:
            ReconcileError: the Application could not be read or its status
                could not be persisted; the caller should retry later.
        """
        nn = key if isinstance(key, NamespacedName) else NamespacedName.parse(key)
        log = _logger.bind(namespace=nn.namespace, name=nn.name, cycle_id=uuid4().hex[:12])
        started = time.monotonic()
        try:
            outcome = await self._reconcile(nn, log)
        except ReconcileError:
            reconcile_total.labels(outcome="error").inc()
            raise
        finally:
            reconcile_duration_seconds.observe(time.monotonic() - started)
        reconcile_total.labels(outcome=outcome.action.value).inc()
        return outcome

    async def _reconcile(self, nn: NamespacedName, log: Any) -> ReconcileOutcome:
        log.debug("reconcile_started")
        key = str(nn)

        try:
            obj = await self._store.get(API_VERSION, KIND, nn.namespace, nn.name)
        except NotFoundError:
            log.debug("application_not_found")
            return ReconcileOutcome(key=key, action=OutcomeAction.NOT_FOUND)
        except StoreError as exc:
            log.error("application_fetch_failed", error=str(exc))
            raise ReconcileError(key, f"failed to get Application: {exc}", exc) from exc

        app = Application.from_dict(obj)
        if app.being_deleted:
            log.debug("application_being_deleted")
            return ReconcileOutcome(key=key, action=OutcomeAction.DELETING)

        outcome = ReconcileOutcome(key=key, action=OutcomeAction.RECONCILED)

        # History is informational; a failure here must not hold back the
        # children.
        olds: list[RevisionSnapshot] | None = None
        try:
            current, olds = await self._history.ensure_current_revision(app, log)
            outcome.current_revision = current.name
        except (KubeAppError, ValueError) as exc:
            log.warning("revision_history_failed", error=str(exc))
            outcome.history_error = str(exc)

        applied = await self._applier.apply_all(app, log)

        cycle_errors: list[Exception] = list(applied.errors)
        new_status = self._aggregator.aggregate(app, applied.resources, cycle_errors, log)
        new_status.observed_generation = app.generation
        outcome.errors = [str(e) for e in cycle_errors]

        if new_status.to_dict() != app.status.to_dict():
            deleted = await self._update_status(nn, new_status, log)
            if deleted:
                return outcome
            outcome.status_updated = True

        if olds is not None:
            try:
                outcome.pruned_revisions = await self._history.cleanup(
                    olds, app.spec.effective_history_limit, log
                )
            except StoreError as exc:
                log.warning("revision_cleanup_failed", error=str(exc))
                outcome.cleanup_error = str(exc)

        log.info(
            "reconcile_finished",
            revision=outcome.current_revision,
            status_updated=outcome.status_updated,
            components_ready=new_status.components_ready,
            errors=len(outcome.errors),
        )
        return outcome

    async def _update_status(self, nn: NamespacedName, status: ApplicationStatus, log: Any) -> bool:
        """Write *status* with re-fetch + retry on conflict.

        Returns True when the Application disappeared before the write.
        """
        key = str(nn)
        body = status.to_dict()

        async def _write() -> None:
            original = await self._store.get(API_VERSION, KIND, nn.namespace, nn.name)
            original["status"] = body
            await self._store.update_status(original)

        def _on_conflict(attempt: int, exc: ConflictError) -> None:
            status_update_conflicts_total.inc()
            log.debug("status_update_conflict", attempt=attempt)

        try:
            await retry_on_conflict(_write, self._status_retry, _on_conflict)
        except NotFoundError:
            log.info("application_deleted_during_reconcile")
            return True
        except StoreError as exc:
            log.error("status_update_failed", error=str(exc))
            raise ReconcileError(key, f"failed to update status of Application {key}: {exc}", exc) from exc
        log.debug("status_updated")
        return False
