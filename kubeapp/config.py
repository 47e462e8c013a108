"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubeapp.models.config import (
    APIConfig,
    ControllerConfig,
    KubeAppConfig,
    LogConfig,
    StatusRetryConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEAPP_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeAppConfig:
    """Load configuration from KUBEAPP_* environment variables."""
    return KubeAppConfig(
        controller=ControllerConfig(
            namespace=_env("NAMESPACE", ""),
            resync_interval=_env_int("RESYNC_INTERVAL", 30, min_val=1, max_val=3600),
            workers=_env_int("WORKERS", 4, min_val=1, max_val=64),
            reconcile_timeout=_env_int("RECONCILE_TIMEOUT", 60, min_val=5, max_val=600),
            max_backoff_seconds=_env_int("MAX_BACKOFF", 300, min_val=1, max_val=3600),
        ),
        status_retry=StatusRetryConfig(
            steps=_env_int("STATUS_RETRY_STEPS", 5, min_val=1, max_val=20),
            delay_ms=_env_int("STATUS_RETRY_DELAY_MS", 10, min_val=0, max_val=5000),
            factor=_env_float("STATUS_RETRY_FACTOR", 1.0),
            jitter=_env_float("STATUS_RETRY_JITTER", 0.1),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 9443, min_val=1024, max_val=65535),
            cert_file=_env("WEBHOOK_CERT_FILE", ""),
            key_file=_env("WEBHOOK_KEY_FILE", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
