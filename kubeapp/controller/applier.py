"""Applies an Application's resource templates to the cluster.

Each template is handled on its own: a template that cannot be decoded, is
owned by someone else, or fails to write is recorded as an error and the
remaining templates are still applied.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

import structlog

from kubeapp.errors import (
    AlreadyExistsError,
    KubeAppError,
    NotFoundError,
    OwnershipConflictError,
    StoreError,
    TemplateDecodeError,
)
from kubeapp.models.application import Application
from kubeapp.observability.metrics import child_apply_errors_total
from kubeapp.store.base import ObjectStore, split_key
from kubeapp.unstructured import (
    carry_owner_references,
    get_owner_references,
    get_resource_version,
    is_controlled_by,
    is_merge_subset,
    object_id,
    set_controller_reference,
    set_namespace,
    set_resource_version,
)

_logger = structlog.get_logger(component="controller.applier")


@dataclass
class ApplyResult:
    """Live documents of every child that is in place, plus per-template errors."""

    resources: list[dict[str, Any]] = field(default_factory=list)
    errors: list[KubeAppError] = field(default_factory=list)


def decode_template(template: Any, index: int) -> dict[str, Any]:
    """Validate a raw template and return a private copy of it.

    Raises:
        TemplateDecodeError: the template is not a Kubernetes object.
    """
    if not isinstance(template, dict):
        raise TemplateDecodeError(f"resources[{index}]: expected an object, got {type(template).__name__}")
    missing = [f for f in ("apiVersion", "kind") if not template.get(f)]
    metadata = template.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        missing.append("metadata.name")
    if missing:
        raise TemplateDecodeError(f"resources[{index}]: missing {', '.join(missing)}")
    return copy.deepcopy(template)


class ResourceApplier:
    """Creates or merge-patches child resources owned by an Application."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    def desired_objects(self, app: Application) -> tuple[list[dict[str, Any]], list[KubeAppError]]:
        """Decode every template and stamp namespace plus controller reference."""
        objects: list[dict[str, Any]] = []
        errors: list[KubeAppError] = []
        owner_ref = app.controller_reference()
        for index, template in enumerate(app.spec.resources):
            try:
                obj = decode_template(template, index)
            except TemplateDecodeError as exc:
                errors.append(exc)
                child_apply_errors_total.labels(reason="decode").inc()
                continue
            set_namespace(obj, app.namespace)
            set_controller_reference(obj, owner_ref)
            objects.append(obj)
        return objects, errors

    async def apply_all(self, app: Application, log: Any = None) -> ApplyResult:
        log = log or _logger
        desired, errors = self.desired_objects(app)
        result = ApplyResult(errors=errors)
        for obj in desired:
            try:
                live = await self._apply_one(app, obj, log)
            except OwnershipConflictError as exc:
                log.warning("child_ownership_conflict", child=object_id(obj))
                child_apply_errors_total.labels(reason="ownership").inc()
                result.errors.append(exc)
                continue
            except StoreError as exc:
                log.error("child_apply_failed", child=object_id(obj), error=str(exc))
                child_apply_errors_total.labels(reason="store").inc()
                result.errors.append(exc)
                continue
            if live is not None:
                result.resources.append(live)
        return result

    async def _apply_one(self, app: Application, obj: dict[str, Any], log: Any) -> dict[str, Any] | None:
        api_version, kind, namespace, name = split_key(obj)
        try:
            live = await self._store.get(api_version, kind, namespace, name)
        except NotFoundError:
            try:
                created = await self._store.create(obj)
            except AlreadyExistsError:
                # Lost a race with another creator; the next cycle takes the
                # update path.
                log.info("child_create_raced", child=object_id(obj))
                return None
            log.info("child_created", child=object_id(obj))
            return created

        if get_owner_references(live) and not is_controlled_by(live, app.uid):
            raise OwnershipConflictError(kind, namespace, name)

        carry_owner_references(obj, live)
        if is_merge_subset(obj, live):
            log.debug("child_unchanged", child=object_id(obj))
            return live

        set_resource_version(obj, get_resource_version(live))
        patched = await self._store.patch(obj)
        log.info("child_patched", child=object_id(obj))
        return patched
