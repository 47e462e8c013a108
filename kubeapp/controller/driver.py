"""Reconcile driver: decides when each Application key is reconciled.

The reconciler itself is agnostic to scheduling.  This driver provides the
delivery contract it relies on:

* at-least-once: every Application is enqueued on each resync tick, and
  failed keys are requeued with per-key exponential backoff;
* per-key serialization: a key is never handed to two workers at once.  A key
  enqueued while it is being processed is marked dirty and queued again when
  the running cycle finishes;
* bounded concurrency: a fixed pool of worker tasks;
* cancellation: every cycle runs under ``asyncio.timeout`` and ``stop()``
  cancels workers promptly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from kubeapp.errors import ReconcileError, StoreError
from kubeapp.models.application import API_VERSION, KIND, NamespacedName
from kubeapp.store.base import ObjectStore

_log = structlog.get_logger(component="controller.driver")

ReconcileFn = Callable[[NamespacedName], Awaitable[Any]]

_BASE_BACKOFF_SECONDS = 0.5


class ReconcileDriver:
    """Periodic-resync work queue feeding a reconcile function.

    Args:
        store:           store used to list Applications on each resync.
        reconcile_fn:    coroutine called with a NamespacedName.
        namespace:       restrict to one namespace; empty means all.
        workers:         number of concurrent worker tasks.
        resync_interval: seconds between full relists.
        timeout:         per-cycle timeout in seconds.
        max_backoff:     cap for the per-key failure backoff in seconds.
    """

    def __init__(
        self,
        store: ObjectStore,
        reconcile_fn: ReconcileFn,
        namespace: str = "",
        workers: int = 4,
        resync_interval: float = 30.0,
        timeout: float = 60.0,
        max_backoff: float = 300.0,
    ) -> None:
        self._store = store
        self._reconcile_fn = reconcile_fn
        self._namespace = namespace
        self._workers = max(workers, 1)
        self._resync_interval = resync_interval
        self._timeout = timeout
        self._max_backoff = max_backoff

        self._queue: asyncio.Queue[NamespacedName] = asyncio.Queue()
        self._queued: set[NamespacedName] = set()
        self._processing: set[NamespacedName] = set()
        self._dirty: set[NamespacedName] = set()
        self._failures: dict[NamespacedName, int] = {}
        self._retry_handles: dict[NamespacedName, asyncio.TimerHandle] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    def enqueue(self, key: NamespacedName) -> None:
        """Schedule *key*; a no-op if it is already waiting."""
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def enqueue_after(self, key: NamespacedName, delay: float) -> None:
        loop = asyncio.get_running_loop()
        existing = self._retry_handles.pop(key, None)
        if existing is not None:
            existing.cancel()

        def _fire() -> None:
            self._retry_handles.pop(key, None)
            if self._running:
                self.enqueue(key)

        self._retry_handles[key] = loop.call_later(delay, _fire)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for i in range(self._workers):
            self._tasks.append(asyncio.create_task(self._worker(), name=f"reconcile-worker-{i}"))
        self._tasks.append(asyncio.create_task(self._resync_loop(), name="reconcile-resync"))
        _log.info("driver_started", workers=self._workers, namespace=self._namespace or "<all>")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        _log.info("driver_stopped")

    async def resync(self) -> int:
        """List every Application and enqueue it.  Returns the number listed."""
        items = await self._store.list(API_VERSION, KIND, namespace=self._namespace)
        for item in items:
            metadata = item.get("metadata") or {}
            name = metadata.get("name")
            if name:
                self.enqueue(NamespacedName(metadata.get("namespace", ""), name))
        return len(items)

    async def _resync_loop(self) -> None:
        while True:
            try:
                count = await self.resync()
                _log.debug("resync_complete", applications=count)
            except StoreError as exc:
                _log.warning("resync_failed", error=str(exc))
            except Exception as exc:  # noqa: BLE001
                _log.exception("resync_crashed", error=str(exc))
            await asyncio.sleep(self._resync_interval)

    async def _worker(self) -> None:
        while True:
            key = await self._queue.get()
            self._queued.discard(key)
            self._processing.add(key)
            try:
                await self.process(key)
            finally:
                self._processing.discard(key)
                self._queue.task_done()
                if key in self._dirty:
                    self._dirty.discard(key)
                    self.enqueue(key)

    async def process(self, key: NamespacedName) -> bool:
        """Run one cycle for *key*, scheduling a retry on failure.

        Returns True on success.
        """
        try:
            async with asyncio.timeout(self._timeout):
                await self._reconcile_fn(key)
        except TimeoutError:
            self._requeue_failed(key, f"reconcile timed out after {self._timeout}s")
            return False
        except ReconcileError as exc:
            self._requeue_failed(key, str(exc))
            return False
        except Exception as exc:  # noqa: BLE001
            # A bug in one cycle must not take the worker down with it.
            _log.exception("reconcile_crashed", key=str(key))
            self._requeue_failed(key, f"unexpected error: {exc}")
            return False
        self._failures.pop(key, None)
        return True

    def backoff_for(self, key: NamespacedName) -> float:
        failures = self._failures.get(key, 0)
        return min(_BASE_BACKOFF_SECONDS * (2 ** max(failures - 1, 0)), self._max_backoff)

    def _requeue_failed(self, key: NamespacedName, error: str) -> None:
        self._failures[key] = self._failures.get(key, 0) + 1
        delay = self.backoff_for(key)
        _log.warning("reconcile_failed", key=str(key), error=error, retry_in=delay, failures=self._failures[key])
        if self._running:
            self.enqueue_after(key, delay)
