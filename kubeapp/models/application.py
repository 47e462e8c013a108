"""Application resource data structures.

Mirrors the persisted shape of ``applications.app.io/v1beta1`` objects.
``from_dict`` accepts the JSON document returned by the API server and
``to_dict`` renders back to it, omitting empty fields the way the API types
declare ``omitempty``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

GROUP = "applications.app.io"
VERSION = "v1beta1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "Application"

DEFAULT_REVISION_HISTORY_LIMIT = 10
MAX_REVISION_HISTORY_LIMIT = 50
MAX_RESOURCES = 50


class ConditionType(StrEnum):
    """Closed set of Application condition types."""

    READY = "Ready"
    QUALIFIED = "Qualified"
    SETTLED = "Settled"
    CLEANUP = "Cleanup"
    ERROR = "Error"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ComputedStatus(StrEnum):
    """Summarised state of a single child resource."""

    READY = "Ready"
    IN_PROGRESS = "InProgress"
    UNKNOWN = "Unknown"


def _omit_empty(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v not in (None, "", [], {}, 0)}


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


@dataclass
class ImageSpec:
    """An icon for the application."""

    source: str = ""
    size: str = ""
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageSpec:
        return cls(source=data.get("src", ""), size=data.get("size", ""), type=data.get("type", ""))

    def to_dict(self) -> dict[str, Any]:
        out = _omit_empty({"size": self.size, "type": self.type})
        return {"src": self.source, **out}


@dataclass
class ContactData:
    name: str = ""
    url: str = ""
    email: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactData:
        return cls(name=data.get("name", ""), url=data.get("url", ""), email=data.get("email", ""))

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"name": self.name, "url": self.url, "email": self.email})


@dataclass
class Link:
    description: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Link:
        return cls(description=data.get("description", ""), url=data.get("url", ""))

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"description": self.description, "url": self.url})


@dataclass
class Descriptor:
    """Descriptive metadata about the application (type, version, owners, ...)."""

    type: str = ""
    version: str = ""
    description: str = ""
    icons: list[ImageSpec] = field(default_factory=list)
    maintainers: list[ContactData] = field(default_factory=list)
    owners: list[ContactData] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Descriptor:
        data = data or {}
        return cls(
            type=data.get("type", ""),
            version=data.get("version", ""),
            description=data.get("description", ""),
            icons=[ImageSpec.from_dict(i) for i in data.get("icons") or []],
            maintainers=[ContactData.from_dict(c) for c in data.get("maintainers") or []],
            owners=[ContactData.from_dict(c) for c in data.get("owners") or []],
            keywords=list(data.get("keywords") or []),
            links=[Link.from_dict(link) for link in data.get("links") or []],
            notes=data.get("notes", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty(
            {
                "type": self.type,
                "version": self.version,
                "description": self.description,
                "icons": [i.to_dict() for i in self.icons],
                "maintainers": [c.to_dict() for c in self.maintainers],
                "owners": [c.to_dict() for c in self.owners],
                "keywords": list(self.keywords),
                "links": [link.to_dict() for link in self.links],
                "notes": self.notes,
            }
        )


# ---------------------------------------------------------------------------
# Spec
# ---------------------------------------------------------------------------


@dataclass
class ApplicationSpec:
    """Desired state: child resource templates plus retention policy.

    ``resources`` holds the templates as opaque JSON documents; they are only
    decoded by the resource applier.
    """

    selector: dict[str, Any] | None = None
    resources: list[Any] = field(default_factory=list)
    descriptor: Descriptor = field(default_factory=Descriptor)
    revision_history_limit: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ApplicationSpec:
        data = data or {}
        return cls(
            selector=copy.deepcopy(data.get("selector")),
            resources=copy.deepcopy(list(data.get("resources") or [])),
            descriptor=Descriptor.from_dict(data.get("descriptor")),
            revision_history_limit=data.get("revisionHistoryLimit"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.selector is not None:
            out["selector"] = copy.deepcopy(self.selector)
        if self.resources:
            out["resources"] = copy.deepcopy(self.resources)
        descriptor = self.descriptor.to_dict()
        if descriptor:
            out["descriptor"] = descriptor
        if self.revision_history_limit is not None:
            out["revisionHistoryLimit"] = self.revision_history_limit
        return out

    @property
    def effective_history_limit(self) -> int:
        """Retention limit with the admission default applied."""
        if self.revision_history_limit is None:
            return DEFAULT_REVISION_HISTORY_LIMIT
        return self.revision_history_limit


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@dataclass
class Condition:
    """One facet of Application state.  Timestamps are RFC 3339 strings."""

    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_update_time: str = ""
    last_transition_time: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        return cls(
            type=data.get("type", ""),
            status=data.get("status", ""),
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_update_time=data.get("lastUpdateTime") or "",
            last_transition_time=data.get("lastTransitionTime") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status,
            **_omit_empty(
                {
                    "reason": self.reason,
                    "message": self.message,
                    "lastUpdateTime": self.last_update_time,
                    "lastTransitionTime": self.last_transition_time,
                }
            ),
        }


@dataclass
class ResourceReference:
    """Locates a child resource in the cluster."""

    api_version: str
    kind: str
    name: str
    namespace: str = ""
    resource_version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceReference:
        return cls(
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            resource_version=data.get("resourceVersion", ""),
        )

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> ResourceReference:
        metadata = obj.get("metadata") or {}
        return cls(
            api_version=obj.get("apiVersion", ""),
            kind=obj.get("kind", ""),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            resource_version=metadata.get("resourceVersion", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"apiVersion": self.api_version, "kind": self.kind}
        if self.namespace:
            out["namespace"] = self.namespace
        out["name"] = self.name
        if self.resource_version:
            out["resourceVersion"] = self.resource_version
        return out


@dataclass
class ResourceStatus:
    resource: ResourceReference
    computed_status: str = ""
    status: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceStatus:
        return cls(
            resource=ResourceReference.from_dict(data.get("resource") or {}),
            computed_status=data.get("computedStatus", ""),
            status=copy.deepcopy(data.get("status")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"resource": self.resource.to_dict()}
        if self.computed_status:
            out["computedStatus"] = self.computed_status
        if self.status:
            out["status"] = copy.deepcopy(self.status)
        return out


@dataclass
class ApplicationStatus:
    """Observed state written back by the reconciler."""

    observed_generation: int = 0
    conditions: list[Condition] = field(default_factory=list)
    resource_statuses: list[ResourceStatus] = field(default_factory=list)
    components_ready: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ApplicationStatus:
        data = data or {}
        return cls(
            observed_generation=int(data.get("observedGeneration") or 0),
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
            resource_statuses=[ResourceStatus.from_dict(r) for r in data.get("resourceStatuses") or []],
            components_ready=data.get("componentsReady", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty(
            {
                "observedGeneration": self.observed_generation,
                "conditions": [c.to_dict() for c in self.conditions],
                "resourceStatuses": [r.to_dict() for r in self.resource_statuses],
                "componentsReady": self.components_ready,
            }
        )

    def get_condition(self, condition_type: str) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@dataclass
class Application:
    """A parsed Application object."""

    name: str
    namespace: str
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: str | None = None
    spec: ApplicationSpec = field(default_factory=ApplicationSpec)
    status: ApplicationStatus = field(default_factory=ApplicationStatus)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Application:
        metadata = obj.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            uid=metadata.get("uid", ""),
            generation=int(metadata.get("generation") or 0),
            resource_version=metadata.get("resourceVersion", ""),
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            deletion_timestamp=metadata.get("deletionTimestamp"),
            spec=ApplicationSpec.from_dict(obj.get("spec")),
            status=ApplicationStatus.from_dict(obj.get("status")),
        )

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": self.name, "namespace": self.namespace}
        metadata.update(
            _omit_empty(
                {
                    "uid": self.uid,
                    "generation": self.generation,
                    "resourceVersion": self.resource_version,
                    "labels": dict(self.labels),
                    "annotations": dict(self.annotations),
                    "deletionTimestamp": self.deletion_timestamp,
                }
            )
        )
        out: dict[str, Any] = {"apiVersion": API_VERSION, "kind": KIND, "metadata": metadata}
        spec = self.spec.to_dict()
        if spec:
            out["spec"] = spec
        status = self.status.to_dict()
        if status:
            out["status"] = status
        return out

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def being_deleted(self) -> bool:
        return bool(self.deletion_timestamp)

    def controller_reference(self) -> dict[str, Any]:
        """Owner reference marking this Application as the managing controller."""
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


@dataclass(frozen=True, order=True)
class NamespacedName:
    """Reconcile key for an Application."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, key: str) -> NamespacedName:
        """Parse ``namespace/name``.  A bare name maps to the default namespace."""
        namespace, sep, name = key.partition("/")
        if not sep:
            return cls(namespace="default", name=namespace)
        if not namespace or not name or "/" in name:
            raise ValueError(f"Invalid resource key: {key!r}")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"
