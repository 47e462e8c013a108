"""Revision snapshot data structures.

A RevisionSnapshot is an immutable copy of an Application's resource-template
section, persisted as an ``apps/v1`` ControllerRevision owned by the
Application.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from kubeapp.hashing import canonical_json
from kubeapp.models.application import GROUP, Application

REVISION_API_VERSION = "apps/v1"
REVISION_KIND = "ControllerRevision"

# Content hash of the snapshot payload.
HASH_LABEL = "controller-revision-hash"
# Uniqueness key: always the snapshot's own name.
UNIQUE_LABEL = f"{GROUP}/revision-name"
# Name of the owning Application, used to narrow list calls.
OWNER_LABEL = f"{GROUP}/name"


@dataclass(frozen=True)
class RevisionSnapshot:
    """One entry of an Application's revision history."""

    name: str
    namespace: str
    revision: int
    content_hash: str
    payload: bytes
    owner_uid: str = ""
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> RevisionSnapshot:
        """Build from a ControllerRevision document.

        The stored ``data`` object is re-serialized canonically so that
        payload comparison is independent of how the store echoes JSON back.
        """
        metadata = obj.get("metadata") or {}
        labels = dict(metadata.get("labels") or {})
        owner_uid = ""
        for ref in metadata.get("ownerReferences") or []:
            if ref.get("controller"):
                owner_uid = ref.get("uid", "")
                break
        data = obj.get("data")
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            revision=int(obj.get("revision") or 0),
            content_hash=labels.get(HASH_LABEL, ""),
            payload=canonical_json(data) if data is not None else b"",
            owner_uid=owner_uid,
            resource_version=metadata.get("resourceVersion", ""),
            labels=labels,
            raw=copy.deepcopy(obj),
        )

    @classmethod
    def build(
        cls,
        app: Application,
        name: str,
        content_hash: str,
        payload: bytes,
        revision: int,
    ) -> RevisionSnapshot:
        labels = dict(app.labels)
        labels[HASH_LABEL] = content_hash
        labels[UNIQUE_LABEL] = name
        labels[OWNER_LABEL] = app.name
        return cls(
            name=name,
            namespace=app.namespace,
            revision=revision,
            content_hash=content_hash,
            payload=payload,
            owner_uid=app.uid,
            labels=labels,
        )

    def to_object(self, app: Application) -> dict[str, Any]:
        """Render as a ControllerRevision owned by *app*."""
        metadata: dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "ownerReferences": [app.controller_reference()],
        }
        if app.annotations:
            metadata["annotations"] = dict(app.annotations)
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": REVISION_API_VERSION,
            "kind": REVISION_KIND,
            "metadata": metadata,
            "data": json.loads(self.payload),
            "revision": self.revision,
        }
