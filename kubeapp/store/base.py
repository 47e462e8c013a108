"""Object store interface consumed by the reconciliation engine.

The engine never talks to the API server directly.  Every read and write goes
through an ObjectStore keyed by ``(apiVersion, kind, namespace, name)`` and
operating on plain JSON documents.  Implementations map their transport
failures onto the StoreError family from :mod:`kubeapp.errors`:

* ``get`` / ``update`` / ``update_status`` / ``patch`` / ``delete`` raise
  NotFoundError for a missing object.  Callers decide whether that is benign.
* ``create`` raises AlreadyExistsError when the name is taken.
* ``update`` / ``update_status`` / ``patch`` raise ConflictError when the
  document carries a stale ``metadata.resourceVersion``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ObjectStore(ABC):
    """Async CRUD over generic structured documents."""

    @abstractmethod
    async def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Return the current document."""

    @abstractmethod
    async def list(
        self,
        api_version: str,
        kind: str,
        namespace: str = "",
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List documents of a kind, optionally in one namespace and matching every label."""

    @abstractmethod
    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create *obj* and return the stored document."""

    @abstractmethod
    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace the object (excluding status) and return the stored document."""

    @abstractmethod
    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace the status subresource and return the stored document."""

    @abstractmethod
    async def patch(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Apply *obj* as a JSON merge patch and return the stored document.

        When *obj* carries ``metadata.resourceVersion`` the write is
        conditional on it.
        """

    @abstractmethod
    async def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        """Delete an object."""

    async def close(self) -> None:  # noqa: B027
        """Release transport resources.  Default is a no-op."""


def split_key(obj: dict[str, Any]) -> tuple[str, str, str, str]:
    """Return ``(apiVersion, kind, namespace, name)`` for a document."""
    metadata = obj.get("metadata") or {}
    return (
        str(obj.get("apiVersion", "")),
        str(obj.get("kind", "")),
        str(metadata.get("namespace", "") or ""),
        str(metadata.get("name", "") or ""),
    )
