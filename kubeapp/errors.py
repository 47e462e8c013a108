"""Exception hierarchy for kubeapp.

Store errors describe what the object store reported; the remaining classes
describe failures of the reconciliation engine itself.  Per-child failures
(decode, ownership, status interpretation) are collected into the Error
condition and never abort a cycle.  Only ReconcileError is fatal.
"""

from __future__ import annotations


class KubeAppError(Exception):
    """Base class for every error raised by kubeapp."""


# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------


class StoreError(KubeAppError):
    """The object store rejected or failed an operation."""


class NotFoundError(StoreError):
    """The addressed object does not exist."""


class AlreadyExistsError(StoreError):
    """Create was called for an object that already exists."""


class ConflictError(StoreError):
    """Write rejected because the supplied resourceVersion is stale."""


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class CanonicalizationError(KubeAppError):
    """The resource template set could not be serialized for hashing."""


class RevisionCollisionError(KubeAppError):
    """A revision with the computed name exists but holds different content."""

    def __init__(self, name: str) -> None:
        super().__init__(f"revision {name} already exists with a different payload")
        self.name = name


class TemplateDecodeError(KubeAppError):
    """A resource template is not a usable Kubernetes object."""


class OwnershipConflictError(KubeAppError):
    """A child resource is owned by something other than this Application."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(f"the resource {kind}/{name} in namespace {namespace} is controlled by other resource")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class StatusInterpretationError(KubeAppError):
    """A child resource status could not be interpreted."""


class ValidationError(KubeAppError):
    """An Application failed admission validation.

    ``field_errors`` holds one human readable entry per offending field.
    """

    def __init__(self, name: str, field_errors: list[str]) -> None:
        super().__init__(f'Application "{name}" is invalid: ' + "; ".join(field_errors))
        self.name = name
        self.field_errors = field_errors


class ReconcileError(KubeAppError):
    """A reconcile cycle failed and must be retried by the caller."""

    def __init__(self, key: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key
        self.cause = cause
