"""Tests for the path-based document helpers."""

from __future__ import annotations

from kubeapp.unstructured import (
    carry_owner_references,
    controller_of,
    get_nested,
    get_owner_references,
    is_controlled_by,
    is_merge_subset,
    object_id,
    remove_nested,
    set_controller_reference,
    set_nested,
    set_resource_version,
)

_OWNER = {"apiVersion": "applications.app.io/v1beta1", "kind": "Application", "name": "shop", "uid": "u1",
          "controller": True, "blockOwnerDeletion": True}


class TestNestedAccess:
    def test_get_nested_missing_hop_returns_default(self) -> None:
        assert get_nested({"a": {"b": 1}}, "a", "c", default="x") == "x"
        assert get_nested({"a": 5}, "a", "b") is None

    def test_get_nested_keeps_falsy_values(self) -> None:
        assert get_nested({"spec": {"replicas": 0}}, "spec", "replicas", default=1) == 0

    def test_set_nested_creates_intermediate_maps(self) -> None:
        obj: dict = {"metadata": "junk"}
        set_nested(obj, "ns", "metadata", "namespace")
        assert obj == {"metadata": {"namespace": "ns"}}

    def test_remove_nested_tolerates_absence(self) -> None:
        obj = {"metadata": {"name": "a"}}
        remove_nested(obj, "metadata", "resourceVersion")
        remove_nested(obj, "status", "phase")
        assert obj == {"metadata": {"name": "a"}}

    def test_set_resource_version_empty_removes(self) -> None:
        obj = {"metadata": {"resourceVersion": "7"}}
        set_resource_version(obj, "")
        assert obj == {"metadata": {}}


class TestOwnerReferences:
    def test_controller_reference_added(self) -> None:
        obj = {"metadata": {"name": "web"}}
        set_controller_reference(obj, _OWNER)
        assert get_owner_references(obj) == [_OWNER]
        assert is_controlled_by(obj, "u1")

    def test_existing_controller_replaced_other_owners_kept(self) -> None:
        other = {"kind": "ConfigMap", "name": "x", "uid": "u9"}
        stale = {"kind": "Application", "name": "old", "uid": "u0", "controller": True}
        obj = {"metadata": {"ownerReferences": [other, stale]}}
        set_controller_reference(obj, _OWNER)
        assert get_owner_references(obj) == [other, _OWNER]
        assert controller_of(obj) == _OWNER

    def test_carry_keeps_live_order_and_foreign_refs(self) -> None:
        ours = {"kind": "Application", "uid": "app-uid-1", "controller": True}
        other = {"kind": "Secret", "uid": "external-uid"}
        desired = {"metadata": {"ownerReferences": [dict(ours)]}}
        live = {"metadata": {"ownerReferences": [other, {**ours, "blockOwnerDeletion": True}]}}
        carry_owner_references(desired, live)
        assert desired["metadata"]["ownerReferences"] == [other, ours]

    def test_carry_adopts_unowned(self) -> None:
        ours = {"kind": "Application", "uid": "app-uid-1", "controller": True}
        desired = {"metadata": {"ownerReferences": [ours]}}
        carry_owner_references(desired, {"metadata": {}})
        assert desired["metadata"]["ownerReferences"] == [ours]

    def test_not_controlled_without_uid(self) -> None:
        obj = {"metadata": {"ownerReferences": [_OWNER]}}
        assert not is_controlled_by(obj, "")
        assert not is_controlled_by(obj, "u2")


class TestMergeSubset:
    def test_subset_of_richer_live_object(self) -> None:
        live = {"spec": {"replicas": 2, "paused": False}, "status": {"ready": 1}}
        assert is_merge_subset({"spec": {"replicas": 2}}, live)

    def test_changed_scalar(self) -> None:
        assert not is_merge_subset({"spec": {"replicas": 3}}, {"spec": {"replicas": 2}})

    def test_lists_compared_whole(self) -> None:
        live = {"ports": [{"port": 80}, {"port": 443}]}
        assert not is_merge_subset({"ports": [{"port": 80}]}, live)
        assert is_merge_subset({"ports": [{"port": 80}, {"port": 443}]}, live)

    def test_null_means_absent(self) -> None:
        assert is_merge_subset({"metadata": {"annotations": None}}, {"metadata": {}})
        assert not is_merge_subset({"metadata": {"annotations": None}}, {"metadata": {"annotations": {}}})

    def test_missing_key_in_live(self) -> None:
        assert not is_merge_subset({"data": {"k": "v"}}, {})


def test_object_id() -> None:
    assert object_id({"kind": "Service", "metadata": {"name": "web", "namespace": "prod"}}) == "Service/prod/web"
    assert object_id({"kind": "Namespace", "metadata": {"name": "prod"}}) == "Namespace/prod"
