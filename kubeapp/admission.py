"""Admission defaulting and validation for Application objects.

Both functions work on raw Application documents (as received in an
AdmissionReview) so the webhook never has to round-trip through the typed
model and lose unknown fields.
"""

from __future__ import annotations

import copy
from typing import Any

import structlog

from kubeapp.errors import ValidationError
from kubeapp.models.application import (
    DEFAULT_REVISION_HISTORY_LIMIT,
    MAX_RESOURCES,
    MAX_REVISION_HISTORY_LIMIT,
)

_log = structlog.get_logger(component="admission")


def _name(obj: dict[str, Any]) -> str:
    metadata = obj.get("metadata")
    return str(metadata.get("name", "")) if isinstance(metadata, dict) else ""


def default_application(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *obj* with ``spec.revisionHistoryLimit`` defaulted."""
    defaulted = copy.deepcopy(obj)
    spec = defaulted.get("spec")
    if not isinstance(spec, dict):
        spec = {}
        defaulted["spec"] = spec
    if spec.get("revisionHistoryLimit") is None:
        spec["revisionHistoryLimit"] = DEFAULT_REVISION_HISTORY_LIMIT
        _log.debug("application_defaulted", name=_name(obj), revision_history_limit=DEFAULT_REVISION_HISTORY_LIMIT)
    return defaulted


def field_errors(obj: dict[str, Any]) -> list[str]:
    """Collect every validation failure of *obj* (empty when valid)."""
    spec = obj.get("spec") or {}
    if not isinstance(spec, dict):
        return ["spec: Invalid value: must be an object"]
    errors: list[str] = []

    limit = spec.get("revisionHistoryLimit")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int):
            errors.append(f"spec.revisionHistoryLimit: Invalid value: {limit!r}: must be an integer")
        elif limit < 0:
            errors.append(f"spec.revisionHistoryLimit: Invalid value: {limit}: must be non-negative")
        elif limit > MAX_REVISION_HISTORY_LIMIT:
            errors.append(
                f"spec.revisionHistoryLimit: Invalid value: {limit}: "
                f"must be no more than {MAX_REVISION_HISTORY_LIMIT}"
            )

    resources = spec.get("resources") or []
    if not isinstance(resources, list):
        errors.append("spec.resources: Invalid value: must be a list")
    elif len(resources) > MAX_RESOURCES:
        errors.append(
            f'spec.resources: Invalid value: "the number of resources is {len(resources)}": '
            f"the number of resources must be no more than {MAX_RESOURCES}"
        )
    return errors


def validate_application(obj: dict[str, Any]) -> None:
    """Validate an Application on create or update.

    Raises:
        ValidationError: with one entry per offending field.
    """
    errors = field_errors(obj)
    if errors:
        _log.info("application_rejected", name=_name(obj), errors=errors)
        raise ValidationError(_name(obj), errors)


def defaulting_patch(obj: dict[str, Any]) -> list[dict[str, Any]]:
    """RFC 6902 operations turning *obj* into ``default_application(obj)``."""
    spec = obj.get("spec")
    if not isinstance(spec, dict):
        return [{"op": "add", "path": "/spec", "value": {"revisionHistoryLimit": DEFAULT_REVISION_HISTORY_LIMIT}}]
    if spec.get("revisionHistoryLimit") is None:
        return [{"op": "add", "path": "/spec/revisionHistoryLimit", "value": DEFAULT_REVISION_HISTORY_LIMIT}]
    return []
