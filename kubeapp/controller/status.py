"""Status aggregation for Application resources.

Turns the live child documents of a cycle into ``resourceStatuses``,
``componentsReady`` and the ``Ready`` / ``Error`` conditions.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from kubeapp.controller.conditions import (
    REASON_COMPONENTS_NOT_READY,
    REASON_COMPONENTS_READY,
    REASON_COMPONENTS_READY_UNKNOWN,
    REASON_ERROR_SEEN,
    clear_error,
    set_error,
    set_not_ready,
    set_ready,
    set_ready_unknown,
)
from kubeapp.errors import StatusInterpretationError
from kubeapp.models.application import (
    Application,
    ApplicationStatus,
    ComputedStatus,
    ResourceReference,
    ResourceStatus,
)
from kubeapp.status.interpreters import InterpreterRegistry, default_registry
from kubeapp.unstructured import object_id

_logger = structlog.get_logger(component="controller.status")


def aggregate_ready(statuses: list[ResourceStatus]) -> tuple[bool, int]:
    """Return ``(all_ready, count_ready)``."""
    count_ready = sum(1 for s in statuses if s.computed_status == ComputedStatus.READY)
    return count_ready == len(statuses), count_ready


def error_message(errors: list[Exception]) -> str:
    """Flatten errors into one message (single error as-is, several bracketed)."""
    messages = [str(e) for e in errors]
    if len(messages) == 1:
        return messages[0]
    return "[" + ", ".join(messages) + "]"


class StatusAggregator:
    """Computes the next ApplicationStatus from the children of one cycle."""

    def __init__(
        self,
        registry: InterpreterRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry or default_registry()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def resource_statuses(
        self,
        resources: list[dict[str, Any]],
        errors: list[Exception],
        log: Any = None,
    ) -> list[ResourceStatus]:
        """Interpret every child; interpretation failures are appended to *errors*."""
        log = log or _logger
        statuses: list[ResourceStatus] = []
        for obj in resources:
            try:
                interpreted = self._registry.interpret(obj)
            except StatusInterpretationError as exc:
                log.error("child_status_failed", child=object_id(obj), error=str(exc))
                errors.append(exc)
                computed = ComputedStatus.UNKNOWN
            else:
                computed = interpreted.status
                log.debug(
                    "child_status_interpreted",
                    child=object_id(obj),
                    status=str(computed),
                    detail=interpreted.detail,
                )
            raw = obj.get("status") if isinstance(obj, dict) else None
            statuses.append(
                ResourceStatus(
                    resource=ResourceReference.from_object(obj),
                    computed_status=str(computed),
                    status=copy.deepcopy(raw) if raw else None,
                )
            )
        return statuses

    def aggregate(
        self,
        app: Application,
        resources: list[dict[str, Any]],
        errors: list[Exception],
        log: Any = None,
    ) -> ApplicationStatus:
        """Build the new status on a copy of the stored one.

        Interpretation failures are appended to *errors*, so after the call it
        holds every error of the cycle.

        Any error this cycle (apply or interpretation) makes the Ready
        condition Unknown: with part of the picture missing neither a positive
        nor a negative claim is safe.
        """
        now = self._clock()
        cycle_errors = errors
        statuses = self.resource_statuses(resources, cycle_errors, log)
        all_ready, count_ready = aggregate_ready(statuses)

        status = copy.deepcopy(app.status)
        status.resource_statuses = statuses
        status.components_ready = f"{count_ready}/{len(statuses)}"

        if cycle_errors:
            set_ready_unknown(
                status,
                REASON_COMPONENTS_READY_UNKNOWN,
                "failed to aggregate all components' statuses, check the Error condition for details",
                now,
            )
        elif all_ready:
            set_ready(status, REASON_COMPONENTS_READY, "all components ready", now)
        else:
            set_not_ready(
                status,
                REASON_COMPONENTS_NOT_READY,
                f"{len(statuses) - count_ready} components not ready",
                now,
            )

        if cycle_errors:
            set_error(status, REASON_ERROR_SEEN, error_message(cycle_errors), now)
        else:
            clear_error(status, now)
        return status
