"""Tests for the FastAPI app: health, metrics and admission webhooks."""

from __future__ import annotations

import base64
import json
from typing import Any
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from kubeapp.api.app import create_app
from kubeapp.api.routes import MUTATE_PATH, VALIDATE_PATH
from kubeapp.observability.metrics import reconcile_total
from tests.factories import application, configmap


def _client(driver: Any = None) -> TestClient:
    return TestClient(create_app(driver=driver), raise_server_exceptions=False)


def _review(obj: dict[str, Any] | None, operation: str = "CREATE") -> dict[str, Any]:
    request: dict[str, Any] = {"uid": "req-1", "operation": operation, "name": "shop", "namespace": "default"}
    if obj is not None:
        request["object"] = obj
    return {"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview", "request": request}


def _driver(running: bool) -> MagicMock:
    driver = MagicMock()
    driver.running = running
    driver.depth = 3
    return driver


class TestHealth:
    def test_healthz(self) -> None:
        resp = _client().get("/healthz")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_readyz_without_driver(self) -> None:
        assert _client().get("/readyz").status_code == 200

    def test_readyz_driver_running(self) -> None:
        resp = _client(_driver(True)).get("/readyz")
        assert resp.status_code == 200
        assert resp.json()["queue_depth"] == 3

    def test_readyz_driver_stopped(self) -> None:
        resp = _client(_driver(False)).get("/readyz")
        assert resp.status_code == 503
        assert resp.json()["status"] == "starting"

    def test_metrics_exposed(self) -> None:
        reconcile_total.labels(outcome="reconciled").inc(0)
        resp = _client().get("/metrics")
        assert resp.status_code == 200
        assert "kubeapp_reconcile_total" in resp.text


class TestMutatingWebhook:
    def test_adds_default_limit(self) -> None:
        resp = _client().post(MUTATE_PATH, json=_review(application(limit=None)))
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "AdmissionReview"
        assert body["response"]["uid"] == "req-1"
        assert body["response"]["allowed"] is True
        assert body["response"]["patchType"] == "JSONPatch"
        patch = json.loads(base64.b64decode(body["response"]["patch"]))
        assert patch == [{"op": "add", "path": "/spec/revisionHistoryLimit", "value": 10}]

    def test_no_patch_when_already_defaulted(self) -> None:
        body = _client().post(MUTATE_PATH, json=_review(application(limit=3))).json()
        assert body["response"] == {"uid": "req-1", "allowed": True}


class TestValidatingWebhook:
    def test_allows_valid(self) -> None:
        body = _client().post(VALIDATE_PATH, json=_review(application())).json()
        assert body["response"]["allowed"] is True

    def test_denies_invalid(self) -> None:
        obj = application(limit=80, resources=[configmap(f"c{i}") for i in range(51)])
        body = _client().post(VALIDATE_PATH, json=_review(obj, operation="UPDATE")).json()
        response = body["response"]
        assert response["allowed"] is False
        assert response["status"]["code"] == 422
        assert response["status"]["message"].startswith('Application "shop" is invalid')

    def test_delete_always_allowed(self) -> None:
        body = _client().post(VALIDATE_PATH, json=_review(None, operation="DELETE")).json()
        assert body["response"]["allowed"] is True

    def test_missing_request(self) -> None:
        resp = _client().post(VALIDATE_PATH, json={"kind": "AdmissionReview"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_ADMISSION_REVIEW"

    def test_malformed_body(self) -> None:
        resp = _client().post(VALIDATE_PATH, json={"request": {"object": "not-a-map"}})
        assert resp.status_code == 400
        assert set(resp.json()) == {"error", "detail"}


_json = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=10),
    lambda children: st.lists(children, max_size=3) | st.dictionaries(st.text(max_size=8), children, max_size=3),
    max_leaves=10,
)


class TestWebhookFuzz:
    @given(body=st.dictionaries(st.sampled_from(["request", "kind", "apiVersion"]), _json, max_size=3))
    @settings(max_examples=50, deadline=None)
    def test_never_500(self, body: dict[str, Any]) -> None:
        client = _client()
        for path in (MUTATE_PATH, VALIDATE_PATH):
            resp = client.post(path, json=body)
            assert resp.status_code in (200, 400)
            assert resp.headers["content-type"].startswith("application/json")
