"""Object store access for kubeapp.

Submodules:
    base        -- ObjectStore ABC consumed by the engine.
    kubernetes  -- kubernetes-asyncio dynamic-client implementation.
"""

from kubeapp.store.base import ObjectStore, split_key

__all__ = ["ObjectStore", "split_key"]
