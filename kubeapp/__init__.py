"""kubeapp: reconciliation engine for the applications.app.io Application resource."""

__version__ = "0.1.0"
