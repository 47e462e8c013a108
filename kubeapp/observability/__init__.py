"""Logging and metrics for kubeapp."""
