"""ObjectStore backed by the Kubernetes API via kubernetes-asyncio.

Uses the dynamic client so that arbitrary child kinds (including custom
resources) can be read and written without generated model classes.

Every failure leaving this module is a StoreError: API errors from discovery
or from the verb call, and transport errors from the underlying aiohttp
session.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic.exceptions import ResourceNotFoundError  # type: ignore[import-untyped]

from kubeapp.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from kubeapp.store.base import ObjectStore, split_key

_log = structlog.get_logger(component="store.kubernetes")

_MERGE_PATCH = "application/merge-patch+json"


def _translate(exc: ApiException, what: str, creating: bool = False) -> StoreError:
    """Map an API error onto the store taxonomy."""
    status = getattr(exc, "status", None)
    reason = getattr(exc, "reason", "") or ""
    if status == 404:
        return NotFoundError(f"{what} not found")
    if status == 409:
        if creating or "AlreadyExists" in str(getattr(exc, "body", "") or ""):
            return AlreadyExistsError(f"{what} already exists")
        return ConflictError(f"{what}: the object has been modified")
    return StoreError(f"{what}: {status} {reason}".strip())


@contextmanager
def _mapped(what: str, creating: bool = False) -> Iterator[None]:
    """Re-raise API and transport failures inside the block as StoreError."""
    try:
        yield
    except ApiException as exc:
        raise _translate(exc, what, creating) from exc
    except (aiohttp.ClientError, OSError) as exc:
        _log.warning("api_transport_error", target=what, error=str(exc))
        raise StoreError(f"{what}: {type(exc).__name__}: {exc}") from exc


def _selector(labels: dict[str, str] | None) -> str | None:
    if not labels:
        return None
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


class KubernetesObjectStore(ObjectStore):
    """Dynamic-client implementation of :class:`ObjectStore`.

    Args:
        api_client: an open ``kubernetes_asyncio.client.ApiClient``.  The
                    store does not own it; ``close()`` only drops the
                    discovery cache.
    """

    def __init__(self, api_client: Any) -> None:
        self._api_client = api_client
        self._dynamic: Any = None

    async def _client(self) -> Any:
        if self._dynamic is None:
            self._dynamic = await DynamicClient(self._api_client)
        return self._dynamic

    async def _resource(self, api_version: str, kind: str) -> tuple[Any, Any]:
        """Return ``(client, resource)``; call inside :func:`_mapped`."""
        client = await self._client()
        try:
            resource = await client.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as exc:
            raise StoreError(f"unknown resource type {api_version}/{kind}") from exc
        return client, resource

    async def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        with _mapped(f"{kind}/{namespace}/{name}"):
            client, resource = await self._resource(api_version, kind)
            result = await client.get(resource, name=name, namespace=namespace or None)
        return result.to_dict()

    async def list(
        self,
        api_version: str,
        kind: str,
        namespace: str = "",
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        with _mapped(f"{kind} list in {namespace or '<all>'}"):
            client, resource = await self._resource(api_version, kind)
            result = await client.get(
                resource,
                namespace=namespace or None,
                label_selector=_selector(label_selector),
            )
        items = result.to_dict().get("items") or []
        # List responses omit the type fields on items.
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        api_version, kind, namespace, name = split_key(obj)
        with _mapped(f"{kind}/{namespace}/{name}", creating=True):
            client, resource = await self._resource(api_version, kind)
            result = await client.create(resource, body=obj, namespace=namespace or None)
        _log.debug("object_created", kind=kind, namespace=namespace, name=name)
        return result.to_dict()

    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        api_version, kind, namespace, name = split_key(obj)
        with _mapped(f"{kind}/{namespace}/{name}"):
            client, resource = await self._resource(api_version, kind)
            result = await client.replace(resource, body=obj, name=name, namespace=namespace or None)
        return result.to_dict()

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        api_version, kind, namespace, name = split_key(obj)
        with _mapped(f"{kind}/{namespace}/{name} status"):
            client, resource = await self._resource(api_version, kind)
            status_resource = resource.subresources.get("status")
            if status_resource is None:
                raise StoreError(f"{api_version}/{kind} has no status subresource")
            result = await client.replace(status_resource, body=obj, name=name, namespace=namespace or None)
        return result.to_dict()

    async def patch(self, obj: dict[str, Any]) -> dict[str, Any]:
        api_version, kind, namespace, name = split_key(obj)
        with _mapped(f"{kind}/{namespace}/{name}"):
            client, resource = await self._resource(api_version, kind)
            result = await client.patch(
                resource,
                body=obj,
                name=name,
                namespace=namespace or None,
                content_type=_MERGE_PATCH,
            )
        return result.to_dict()

    async def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        with _mapped(f"{kind}/{namespace}/{name}"):
            client, resource = await self._resource(api_version, kind)
            await client.delete(resource, name=name, namespace=namespace or None)
        _log.debug("object_deleted", kind=kind, namespace=namespace, name=name)

    async def close(self) -> None:
        self._dynamic = None
