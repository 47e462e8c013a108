"""Application bootstrap for kubeapp.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → object store → reconciler
              → driver → REST (webhooks, health, metrics)

Shutdown stops components in reverse startup order.  Each component's stop
error is caught and logged on its own so one failing teardown does not keep
the rest from shutting down.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kubeapp.config import load_config
from kubeapp.models.config import KubeAppConfig
from kubeapp.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeAppApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that never started or has already
    stopped.
    """

    def __init__(self, config: KubeAppConfig | None = None, webhooks: bool = True) -> None:
        self.config: KubeAppConfig | None = config
        self._webhooks = webhooks

        self._api_client: Any = None
        self._store: Any = None
        self._reconciler: Any = None
        self._driver: Any = None
        self._rest_server: Any = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubeapp_starting", version=_kubeapp_version())

        await self._start_k8s_client()
        await self._start_store()
        await self._start_reconciler()
        await self._start_driver()
        if self._webhooks:
            await self._start_rest()

        self._running = True
        self._log.info("kubeapp_started", port=self.config.api.port, webhooks=self._webhooks)

    async def _start_k8s_client(self) -> None:
        """Load in-cluster config, falling back to kubeconfig, and open an ApiClient."""
        assert self._log is not None
        self._log.debug("starting_k8s_client")
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
            from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s_client_configured", source="in-cluster")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s_client_configured", source="kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_store(self) -> None:
        assert self._log is not None
        try:
            from kubeapp.store.kubernetes import KubernetesObjectStore

            self._store = KubernetesObjectStore(self._api_client)
            self._log.info("object_store_started")
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_reconciler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        from kubeapp.controller.reconciler import ApplicationReconciler
        from kubeapp.controller.retry import Backoff

        retry = self.config.status_retry
        self._reconciler = ApplicationReconciler(
            self._store,
            status_retry=Backoff(
                steps=retry.steps,
                delay=retry.delay_ms / 1000.0,
                factor=retry.factor,
                jitter=retry.jitter,
            ),
        )
        self._log.info("reconciler_started", status_retry_steps=retry.steps)

    async def _start_driver(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubeapp.controller.driver import ReconcileDriver

            ctl = self.config.controller
            driver = ReconcileDriver(
                self._store,
                self._reconciler.reconcile,
                namespace=ctl.namespace,
                workers=ctl.workers,
                resync_interval=ctl.resync_interval,
                timeout=ctl.reconcile_timeout,
                max_backoff=ctl.max_backoff_seconds,
            )
            await driver.start()
            self._driver = driver
        except Exception as exc:
            raise _ComponentError("driver", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn server for webhooks, health and metrics."""
        assert self._log is not None
        assert self.config is not None
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kubeapp.api import create_app

            api = self.config.api
            ssl_kwargs: dict[str, Any] = {}
            if api.cert_file and api.key_file:
                ssl_kwargs = {"ssl_certfile": api.cert_file, "ssl_keyfile": api.key_file}
            else:
                self._log.warning("webhook_tls_disabled", reason="no certificate configured")

            uv_config = uvicorn.Config(
                app=create_app(driver=self._driver, config=self.config),
                host="0.0.0.0",
                port=api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
                **ssl_kwargs,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest_api_started", port=api.port, tls=bool(ssl_kwargs))
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubeapp_shutting_down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("driver", self._driver)
        self._driver = None
        await self._stop_component("store", self._store)
        self._store = None
        await self._stop_k8s_client()

        log.info("kubeapp_stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() or close() on a component, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None) or getattr(component, "close", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component_stop_timed_out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component_stop_failed", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s_client_close_failed", error=str(exc))
        self._api_client = None


def _kubeapp_version() -> str:
    from kubeapp import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KubeAppConfig | None = None, webhooks: bool = True) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeAppApp(config=config, webhooks=webhooks)
    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()

    def _request_shutdown() -> None:
        stopped.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        await stopped.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal_startup_error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc
    finally:
        await app.stop()
