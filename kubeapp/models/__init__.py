"""Core data structures for kubeapp."""

from kubeapp.models.application import (
    Application,
    ApplicationSpec,
    ApplicationStatus,
    ComputedStatus,
    Condition,
    ConditionStatus,
    ConditionType,
    Descriptor,
    NamespacedName,
    ResourceReference,
    ResourceStatus,
)
from kubeapp.models.config import KubeAppConfig
from kubeapp.models.revision import RevisionSnapshot

__all__ = [
    "Application",
    "ApplicationSpec",
    "ApplicationStatus",
    "ComputedStatus",
    "Condition",
    "ConditionStatus",
    "ConditionType",
    "Descriptor",
    "KubeAppConfig",
    "NamespacedName",
    "ResourceReference",
    "ResourceStatus",
    "RevisionSnapshot",
]
