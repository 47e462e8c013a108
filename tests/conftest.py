"""Shared fixtures for kubeapp tests.

The engine is wired against an in-memory object store with a fixed clock and
a zero-delay status retry, so full reconcile cycles run in microseconds and
condition timestamps are deterministic.
"""

from __future__ import annotations

import pytest

from kubeapp.controller.applier import ResourceApplier
from kubeapp.controller.history import HistoryManager
from kubeapp.controller.reconciler import ApplicationReconciler
from kubeapp.controller.retry import Backoff
from kubeapp.controller.status import StatusAggregator
from tests.factories import fixed_clock
from tests.fakes import InMemoryObjectStore

FAST_RETRY = Backoff(steps=5, delay=0.0, factor=1.0, jitter=0.0)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def history(store: InMemoryObjectStore) -> HistoryManager:
    return HistoryManager(store)


@pytest.fixture
def applier(store: InMemoryObjectStore) -> ResourceApplier:
    return ResourceApplier(store)


@pytest.fixture
def aggregator() -> StatusAggregator:
    return StatusAggregator(clock=fixed_clock())


@pytest.fixture
def reconciler(store: InMemoryObjectStore, aggregator: StatusAggregator) -> ApplicationReconciler:
    return ApplicationReconciler(store, aggregator=aggregator, status_retry=FAST_RETRY)
