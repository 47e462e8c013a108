"""Canonical serialization and content hashing for revision snapshots.

The hash identifies the content of an Application's resource-template set.
Documents are rendered to a canonical JSON form (sorted keys, compact
separators, UTF-8, integral floats written as integers) and the bytes are fed
into 32-bit FNV-1a, so equal documents hash equally regardless of key order or
of how a client happened to decode numbers.
"""

from __future__ import annotations

import json
import math
from typing import Any

from kubeapp.errors import CanonicalizationError

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193

# Same alphabet as the apimachinery rand package: no vowels, no confusable
# digits, so encoded hashes never spell words.
_SAFE_ALPHANUMS = "bcdfghjklmnpqrstvwxz2456789"


def _normalize(value: Any, path: str = "$") -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CanonicalizationError(f"non-finite number at {path}")
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise CanonicalizationError(f"non-string key {key!r} at {path}")
            out[key] = _normalize(item, f"{path}.{key}")
        return out
    if isinstance(value, (list, tuple)):
        return [_normalize(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise CanonicalizationError(f"unsupported value of type {type(value).__name__} at {path}")


def canonical_json(value: Any) -> bytes:
    """Serialize *value* to canonical JSON bytes.

    Raises:
        CanonicalizationError: if *value* is not a JSON-compatible structure.
    """
    normalized = _normalize(value)
    return json.dumps(normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def template_payload(resources: list[Any]) -> bytes:
    """Canonical payload of a resource-template set.

    Only the templates take part, so label, annotation or status churn on the
    Application never produces a new revision.
    """
    return canonical_json({"$patch": "replace", "spec": {"resources": list(resources)}})


def fnv1a_32(data: bytes) -> int:
    h = _FNV32_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


def safe_encode(value: str) -> str:
    """Map every character onto a DNS-safe alphabet (one output char per input char)."""
    return "".join(_SAFE_ALPHANUMS[ord(ch) % len(_SAFE_ALPHANUMS)] for ch in value)


def content_hash(payload: bytes) -> str:
    """Stable, name-safe hash string for a canonical payload."""
    return safe_encode(str(fnv1a_32(payload)))


def revision_name(parent_name: str, hash_value: str) -> str:
    return f"{parent_name}-{hash_value}"
