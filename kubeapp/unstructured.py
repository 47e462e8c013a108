"""Path-based helpers for schema-free Kubernetes documents.

Child resources are arbitrary kinds, so they are handled as plain JSON
dictionaries.  Every mutation the engine performs (namespace injection,
owner references, resourceVersion carry-over) goes through these accessors.
"""

from __future__ import annotations

from typing import Any

_MISSING = object()


def get_nested(obj: dict[str, Any], *path: str, default: Any = None) -> Any:
    """Return ``obj[path[0]][path[1]]...`` or *default* when any hop is absent."""
    current: Any = obj
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return default
    return current


def set_nested(obj: dict[str, Any], value: Any, *path: str) -> None:
    """Set ``obj[path...] = value``, creating intermediate mappings."""
    current = obj
    for key in path[:-1]:
        nxt = current.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            current[key] = nxt
        current = nxt
    current[path[-1]] = value


def remove_nested(obj: dict[str, Any], *path: str) -> None:
    parent = get_nested(obj, *path[:-1])
    if isinstance(parent, dict):
        parent.pop(path[-1], None)


def get_name(obj: dict[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "name", default="") or "")


def get_namespace(obj: dict[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "namespace", default="") or "")


def set_namespace(obj: dict[str, Any], namespace: str) -> None:
    set_nested(obj, namespace, "metadata", "namespace")


def get_resource_version(obj: dict[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "resourceVersion", default="") or "")


def set_resource_version(obj: dict[str, Any], resource_version: str) -> None:
    if resource_version:
        set_nested(obj, resource_version, "metadata", "resourceVersion")
    else:
        remove_nested(obj, "metadata", "resourceVersion")


def get_owner_references(obj: dict[str, Any]) -> list[dict[str, Any]]:
    refs = get_nested(obj, "metadata", "ownerReferences", default=None)
    return list(refs) if isinstance(refs, list) else []


def set_controller_reference(obj: dict[str, Any], owner_ref: dict[str, Any]) -> None:
    """Install *owner_ref* as the controller reference of *obj*.

    Any existing controller reference is replaced; non-controller owner
    references declared by the template are kept.
    """
    refs = [
        ref
        for ref in get_owner_references(obj)
        if not ref.get("controller") and ref.get("uid") != owner_ref.get("uid")
    ]
    refs.append(dict(owner_ref))
    set_nested(obj, refs, "metadata", "ownerReferences")


def controller_of(obj: dict[str, Any]) -> dict[str, Any] | None:
    for ref in get_owner_references(obj):
        if ref.get("controller"):
            return ref
    return None


def is_controlled_by(obj: dict[str, Any], owner_uid: str) -> bool:
    ref = controller_of(obj)
    return ref is not None and bool(owner_uid) and ref.get("uid") == owner_uid


def carry_owner_references(desired: dict[str, Any], live: dict[str, Any]) -> None:
    """Fold the owner references already on *live* into *desired*.

    A merge patch replaces ``ownerReferences`` as a whole, so references added
    by other parties must be sent back unchanged.  The live order is kept; the
    controller reference of *desired* takes the place of the live controller
    reference, and references only *desired* declares go at the end.
    """
    wanted = get_owner_references(desired)
    controller = next((ref for ref in wanted if ref.get("controller")), None)
    owner_uid = controller.get("uid") if controller else None
    by_uid = {ref.get("uid"): ref for ref in wanted if not ref.get("controller")}
    merged: list[dict[str, Any]] = []
    for ref in get_owner_references(live):
        if ref.get("controller") or (owner_uid and ref.get("uid") == owner_uid):
            if controller is not None:
                merged.append(controller)
                controller = None
            continue
        merged.append(by_uid.pop(ref.get("uid"), ref))
    merged.extend(by_uid.values())
    if controller is not None:
        merged.append(controller)
    set_nested(desired, merged, "metadata", "ownerReferences")


def is_merge_subset(patch: Any, live: Any) -> bool:
    """True when applying *patch* as a JSON merge patch would not change *live*.

    Mappings are compared key by key; any other value (lists included, which
    merge patches replace wholesale) must be equal.  A ``None`` in the patch
    means deletion, so it is a no-op only when the key is absent.
    """
    if isinstance(patch, dict):
        if not isinstance(live, dict):
            return False
        for key, value in patch.items():
            if value is None:
                if key in live:
                    return False
                continue
            if key not in live or not is_merge_subset(value, live[key]):
                return False
        return True
    return bool(patch == live)


def object_id(obj: dict[str, Any]) -> str:
    """``Kind/namespace/name`` for logs and error messages."""
    kind = obj.get("kind", "") if isinstance(obj, dict) else ""
    namespace = get_namespace(obj)
    name = get_name(obj)
    return f"{kind}/{namespace}/{name}" if namespace else f"{kind}/{name}"
