"""Condition bookkeeping for ApplicationStatus.

Conditions are keyed by type and kept in insertion order.  Each type moves
independently: ``last_transition_time`` is stamped only when ``status``
changes, ``last_update_time`` whenever status, reason or message change.
Re-setting an identical condition is a no-op, so a steady state never yields
a status diff.
"""

from __future__ import annotations

from datetime import datetime

from kubeapp.models.application import (
    ApplicationStatus,
    Condition,
    ConditionStatus,
    ConditionType,
)

REASON_COMPONENTS_READY = "ComponentsReady"
REASON_COMPONENTS_NOT_READY = "ComponentsNotReady"
REASON_COMPONENTS_READY_UNKNOWN = "ComponentsReadyUnknown"
REASON_ERROR_SEEN = "ErrorSeen"
REASON_NO_ERROR = "NoError"


def format_time(ts: datetime) -> str:
    """RFC 3339 with second precision, as metav1.Time serializes."""
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


def set_condition(
    status: ApplicationStatus,
    condition_type: ConditionType | str,
    value: ConditionStatus | str,
    reason: str,
    message: str,
    now: datetime,
) -> Condition:
    """Create or update the condition of *condition_type* in place."""
    stamp = format_time(now)
    existing = status.get_condition(str(condition_type))
    if existing is None:
        condition = Condition(
            type=str(condition_type),
            status=str(value),
            reason=reason,
            message=message,
            last_update_time=stamp,
            last_transition_time=stamp,
        )
        status.conditions.append(condition)
        return condition

    if existing.status != str(value):
        existing.status = str(value)
        existing.last_transition_time = stamp
        existing.last_update_time = stamp
    if existing.reason != reason or existing.message != message:
        existing.reason = reason
        existing.message = message
        existing.last_update_time = stamp
    return existing


def set_ready(status: ApplicationStatus, reason: str, message: str, now: datetime) -> None:
    set_condition(status, ConditionType.READY, ConditionStatus.TRUE, reason, message, now)


def set_not_ready(status: ApplicationStatus, reason: str, message: str, now: datetime) -> None:
    set_condition(status, ConditionType.READY, ConditionStatus.FALSE, reason, message, now)


def set_ready_unknown(status: ApplicationStatus, reason: str, message: str, now: datetime) -> None:
    set_condition(status, ConditionType.READY, ConditionStatus.UNKNOWN, reason, message, now)


def set_error(status: ApplicationStatus, reason: str, message: str, now: datetime) -> None:
    set_condition(status, ConditionType.ERROR, ConditionStatus.TRUE, reason, message, now)


def clear_error(status: ApplicationStatus, now: datetime) -> None:
    """Flip an existing Error condition to False.

    An Application that never saw an error gets no Error condition at all;
    once one was recorded it stays in the list with status False.
    """
    if status.get_condition(ConditionType.ERROR) is None:
        return
    set_condition(status, ConditionType.ERROR, ConditionStatus.FALSE, REASON_NO_ERROR, "No error seen", now)
