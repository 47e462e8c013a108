"""Tests for StatusAggregator."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from kubeapp.controller.status import StatusAggregator, aggregate_ready, error_message
from kubeapp.errors import OwnershipConflictError, StoreError
from kubeapp.models.application import (
    Application,
    ComputedStatus,
    ConditionType,
    ResourceReference,
    ResourceStatus,
)
from kubeapp.status.interpreters import default_registry
from tests.factories import application, configmap, deployment, fixed_clock, ready_deployment_status


def _live(obj: dict[str, Any], status: Any = None, rv: str = "5") -> dict[str, Any]:
    live = dict(obj)
    live["metadata"] = {**obj["metadata"], "namespace": "default", "resourceVersion": rv, "generation": 1}
    if status is not None:
        live["status"] = status
    return live


def _app() -> Application:
    return Application.from_dict(application())


class TestHelpers:
    def test_aggregate_ready(self) -> None:
        ref = ResourceReference("v1", "ConfigMap", "c")
        statuses = [ResourceStatus(ref, ComputedStatus.READY), ResourceStatus(ref, ComputedStatus.IN_PROGRESS)]
        assert aggregate_ready(statuses) == (False, 1)
        assert aggregate_ready([]) == (True, 0)

    def test_error_message(self) -> None:
        assert error_message([StoreError("a")]) == "a"
        assert error_message([StoreError("a"), StoreError("b")]) == "[a, b]"


class TestAggregate:
    def test_all_ready(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        resources = [_live(deployment(), ready_deployment_status()), _live(configmap())]
        status = aggregator.aggregate(_app(), resources, [])
        assert status.components_ready == "2/2"
        ready = status.get_condition(ConditionType.READY)
        assert ready is not None
        assert (ready.status, ready.reason, ready.message) == ("True", "ComponentsReady", "all components ready")
        assert status.get_condition(ConditionType.ERROR) is None

    def test_not_ready_counts_missing_components(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        status = aggregator.aggregate(_app(), [_live(deployment()), _live(configmap())], [])
        ready = status.get_condition(ConditionType.READY)
        assert ready is not None
        assert (ready.status, ready.message) == ("False", "1 components not ready")
        assert status.components_ready == "1/2"

    def test_resource_statuses_reference_live_objects(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        dep_status = ready_deployment_status()
        status = aggregator.aggregate(_app(), [_live(deployment(), dep_status, rv="42")], [])
        entry = status.resource_statuses[0].to_dict()
        assert entry == {
            "resource": {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "namespace": "default",
                "name": "web",
                "resourceVersion": "42",
            },
            "computedStatus": "Ready",
            "status": dep_status,
        }

    def test_apply_error_makes_ready_unknown(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        errors: list[Exception] = [OwnershipConflictError("Service", "default", "web")]
        status = aggregator.aggregate(_app(), [_live(configmap())], errors)
        ready = status.get_condition(ConditionType.READY)
        error = status.get_condition(ConditionType.ERROR)
        assert ready is not None and ready.status == "Unknown"
        assert ready.reason == "ComponentsReadyUnknown"
        assert error is not None and error.status == "True"
        assert error.message == "the resource Service/web in namespace default is controlled by other resource"

    def test_interpretation_error_recorded(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        bad = _live(deployment(), {**ready_deployment_status(), "readyReplicas": "x"})
        errors: list[Exception] = []
        status = aggregator.aggregate(_app(), [bad, _live(configmap())], errors)
        assert len(errors) == 1
        assert status.resource_statuses[0].computed_status == "Unknown"
        assert status.components_ready == "1/2"
        ready = status.get_condition(ConditionType.READY)
        assert ready is not None and ready.status == "Unknown"

    def test_error_cleared_on_recovery(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        app = _app()
        app.status = aggregator.aggregate(app, [], [StoreError("boom")])
        recovered = aggregator.aggregate(app, [_live(configmap())], [])
        error = recovered.get_condition(ConditionType.ERROR)
        assert error is not None
        assert (error.status, error.reason) == ("False", "NoError")

    def test_stored_status_not_mutated(self) -> None:
        aggregator = StatusAggregator(clock=fixed_clock())
        app = _app()
        aggregator.aggregate(app, [_live(configmap())], [])
        assert app.status.conditions == []


def test_interpreter_detail_is_logged() -> None:
    child = _live(deployment(), status={"observedGeneration": 1, "replicas": 2, "updatedReplicas": 1})
    expected = default_registry().interpret(child)
    log = MagicMock()

    StatusAggregator(clock=fixed_clock()).resource_statuses([child], [], log)

    log.debug.assert_called_once_with(
        "child_status_interpreted",
        child="Deployment/default/web",
        status=str(expected.status),
        detail=expected.detail,
    )
