"""Tests for ResourceApplier against the in-memory store."""

from __future__ import annotations

import pytest

from kubeapp.controller.applier import ResourceApplier, decode_template
from kubeapp.errors import AlreadyExistsError, OwnershipConflictError, StoreError, TemplateDecodeError
from kubeapp.models.application import Application
from kubeapp.unstructured import is_controlled_by
from tests.factories import application, configmap, deployment
from tests.fakes import InMemoryObjectStore


def _app(resources: list) -> Application:
    return Application.from_dict(application(resources=resources))


class TestDecodeTemplate:
    def test_returns_private_copy(self) -> None:
        template = configmap()
        decoded = decode_template(template, 0)
        decoded["metadata"]["namespace"] = "x"
        assert "namespace" not in template["metadata"]

    @pytest.mark.parametrize(
        ("template", "missing"),
        [
            ({"kind": "ConfigMap", "metadata": {"name": "a"}}, "apiVersion"),
            ({"apiVersion": "v1", "metadata": {"name": "a"}}, "kind"),
            ({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {}}, "metadata.name"),
        ],
    )
    def test_missing_fields(self, template: dict, missing: str) -> None:
        with pytest.raises(TemplateDecodeError, match=missing):
            decode_template(template, 3)

    def test_not_an_object(self) -> None:
        with pytest.raises(TemplateDecodeError, match=r"resources\[1\]"):
            decode_template("kind: ConfigMap", 1)


class TestDesiredObjects:
    def test_namespace_and_owner_injected(self, applier: ResourceApplier) -> None:
        template = configmap()
        template["metadata"]["namespace"] = "elsewhere"
        objects, errors = applier.desired_objects(_app([template]))
        assert errors == []
        assert objects[0]["metadata"]["namespace"] == "default"
        assert is_controlled_by(objects[0], "app-uid-1")


class TestApplyAll:
    async def test_creates_missing_children(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        result = await applier.apply_all(_app([deployment(), configmap()]))
        assert result.errors == []
        assert [r["metadata"]["name"] for r in result.resources] == ["web", "settings"]
        assert store.peek("apps/v1", "Deployment", "default", "web") is not None
        assert store.count("create") == 2

    async def test_unchanged_child_not_patched(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        app = _app([configmap()])
        await applier.apply_all(app)
        result = await applier.apply_all(app)
        assert store.count("patch") == 0
        assert result.resources[0]["metadata"]["resourceVersion"] == "1"

    async def test_changed_child_patched(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        await applier.apply_all(_app([configmap(data={"mode": "a"})]))
        result = await applier.apply_all(_app([configmap(data={"mode": "b"})]))
        assert store.count("patch") == 1
        assert result.resources[0]["data"] == {"mode": "b"}

    async def test_patch_keeps_fields_set_by_others(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        await applier.apply_all(_app([deployment(replicas=1)]))
        store.set_status("apps/v1", "Deployment", "default", "web", {"readyReplicas": 1})
        await applier.apply_all(_app([deployment(replicas=2)]))
        live = store.peek("apps/v1", "Deployment", "default", "web")
        assert live is not None
        assert live["spec"]["replicas"] == 2
        assert live["status"] == {"readyReplicas": 1}

    async def test_unowned_existing_object_is_adopted(
        self, store: InMemoryObjectStore, applier: ResourceApplier
    ) -> None:
        store.seed({**configmap(), "metadata": {"name": "settings", "namespace": "default"}})
        result = await applier.apply_all(_app([configmap()]))
        assert result.errors == []
        live = store.peek("v1", "ConfigMap", "default", "settings")
        assert live is not None and is_controlled_by(live, "app-uid-1")

    async def test_owner_references_added_by_others_survive(
        self, store: InMemoryObjectStore, applier: ResourceApplier
    ) -> None:
        app = _app([configmap()])
        await applier.apply_all(app)
        live = store.peek("v1", "ConfigMap", "default", "settings")
        assert live is not None
        extra = {"apiVersion": "v1", "kind": "Secret", "name": "tls", "uid": "external-uid"}
        live["metadata"]["ownerReferences"].append(extra)
        await store.update(live)

        await applier.apply_all(app)
        await applier.apply_all(app)

        assert store.count("patch") == 0
        after = store.peek("v1", "ConfigMap", "default", "settings")
        assert after is not None
        assert extra in after["metadata"]["ownerReferences"]
        assert is_controlled_by(after, "app-uid-1")

    async def test_owner_references_kept_when_patching(
        self, store: InMemoryObjectStore, applier: ResourceApplier
    ) -> None:
        await applier.apply_all(_app([configmap(data={"mode": "a"})]))
        live = store.peek("v1", "ConfigMap", "default", "settings")
        assert live is not None
        extra = {"apiVersion": "v1", "kind": "Secret", "name": "tls", "uid": "external-uid"}
        live["metadata"]["ownerReferences"].insert(0, extra)
        await store.update(live)

        await applier.apply_all(_app([configmap(data={"mode": "b"})]))

        after = store.peek("v1", "ConfigMap", "default", "settings")
        assert after is not None
        assert after["data"] == {"mode": "b"}
        assert after["metadata"]["ownerReferences"][0] == extra
        assert len(after["metadata"]["ownerReferences"]) == 2

    async def test_foreign_owner_is_conflict(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        foreign = {"apiVersion": "apps/v1", "kind": "ReplicaSet", "name": "x", "uid": "other", "controller": True}
        store.seed({**configmap(), "metadata": {"name": "settings", "namespace": "default",
                                                 "ownerReferences": [foreign]}})
        result = await applier.apply_all(_app([configmap(), deployment()]))
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], OwnershipConflictError)
        assert [r["kind"] for r in result.resources] == ["Deployment"]
        assert store.count("patch") == 0

    async def test_store_failure_isolated_to_one_child(
        self, store: InMemoryObjectStore, applier: ResourceApplier
    ) -> None:
        store.fail_next("create", "Deployment", StoreError("quota exceeded"))
        result = await applier.apply_all(_app([deployment(), configmap()]))
        assert [str(e) for e in result.errors] == ["quota exceeded"]
        assert [r["kind"] for r in result.resources] == ["ConfigMap"]

    async def test_create_race_is_not_an_error(self, store: InMemoryObjectStore, applier: ResourceApplier) -> None:
        store.fail_next("create", "ConfigMap", AlreadyExistsError("settings exists"))
        result = await applier.apply_all(_app([configmap()]))
        assert result.errors == []
        assert result.resources == []

    async def test_decode_error_does_not_stop_others(self, applier: ResourceApplier) -> None:
        result = await applier.apply_all(_app([{"kind": "ConfigMap"}, configmap()]))
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], TemplateDecodeError)
        assert len(result.resources) == 1
