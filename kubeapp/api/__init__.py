"""HTTP layer for kubeapp.

Exposes:
    create_app -- FastAPI application factory.
"""

from kubeapp.api.app import create_app

__all__ = ["create_app"]
