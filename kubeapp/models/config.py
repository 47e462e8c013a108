"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ControllerConfig:
    """Reconcile driver configuration."""

    namespace: str = ""  # empty watches every namespace
    resync_interval: int = 30
    workers: int = 4
    reconcile_timeout: int = 60
    max_backoff_seconds: int = 300


@dataclass
class StatusRetryConfig:
    """Optimistic-concurrency retry budget for status writes."""

    steps: int = 5
    delay_ms: int = 10
    factor: float = 1.0
    jitter: float = 0.1


@dataclass
class APIConfig:
    """Webhook / health / metrics HTTP server configuration."""

    port: int = 9443
    cert_file: str = ""
    key_file: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeAppConfig:
    """Top-level kubeapp configuration."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    status_retry: StatusRetryConfig = field(default_factory=StatusRetryConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
