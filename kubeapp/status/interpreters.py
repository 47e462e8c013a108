"""Kind-specific status interpreters.

An interpreter looks at a live child document and says whether it is Ready,
InProgress or Unknown.  Interpreters are plain callables registered per kind
on an InterpreterRegistry; kinds without a dedicated interpreter fall back to
``generic_status``.

Interpreters raise StatusInterpretationError when the document is malformed.
The aggregator turns that into an Unknown child status plus an error entry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kubeapp.errors import StatusInterpretationError
from kubeapp.models.application import ComputedStatus
from kubeapp.unstructured import get_nested, object_id


@dataclass(frozen=True)
class InterpretedStatus:
    status: ComputedStatus
    detail: str = ""


StatusInterpreter = Callable[[dict[str, Any]], InterpretedStatus]


def _ready(detail: str = "") -> InterpretedStatus:
    return InterpretedStatus(ComputedStatus.READY, detail)


def _in_progress(detail: str) -> InterpretedStatus:
    return InterpretedStatus(ComputedStatus.IN_PROGRESS, detail)


def _status_block(obj: dict[str, Any]) -> dict[str, Any]:
    status = obj.get("status")
    if status is None:
        return {}
    if not isinstance(status, dict):
        raise StatusInterpretationError(f"{object_id(obj)}: status is not an object")
    return status


def _int_field(obj: dict[str, Any], default: int, *path: str) -> int:
    value = get_nested(obj, *path, default=None)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise StatusInterpretationError(f"{object_id(obj)}: {'.'.join(path)} is not an integer: {value!r}")
    return value


def _condition(status: dict[str, Any], condition_type: str) -> dict[str, Any] | None:
    conditions = status.get("conditions") or []
    if not isinstance(conditions, list):
        return None
    for cond in conditions:
        if isinstance(cond, dict) and cond.get("type") == condition_type:
            return cond
    return None


def _generation_stale(obj: dict[str, Any]) -> InterpretedStatus | None:
    generation = _int_field(obj, 0, "metadata", "generation")
    observed = _int_field(obj, 0, "status", "observedGeneration")
    if generation and observed and observed < generation:
        return _in_progress(f"observedGeneration {observed} behind generation {generation}")
    return None


# ---------------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------------


def deployment_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    if not status:
        return _in_progress("no status reported yet")
    stale = _generation_stale(obj)
    if stale is not None:
        return stale

    replicas = _int_field(obj, 1, "spec", "replicas")
    updated = _int_field(obj, 0, "status", "updatedReplicas")
    ready = _int_field(obj, 0, "status", "readyReplicas")
    available = _int_field(obj, 0, "status", "availableReplicas")
    total = _int_field(obj, 0, "status", "replicas")

    progressing = _condition(status, "Progressing")
    if progressing and progressing.get("reason") == "ProgressDeadlineExceeded":
        return _in_progress(f"progress deadline exceeded: {progressing.get('message', '')}")
    if updated < replicas:
        return _in_progress(f"updated replicas {updated}/{replicas}")
    if total > updated:
        return _in_progress(f"{total - updated} old replicas pending termination")
    if available < updated or ready < replicas:
        return _in_progress(f"available replicas {available}/{replicas}")
    return _ready(f"{ready}/{replicas} replicas ready")


def statefulset_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    if not status:
        return _in_progress("no status reported yet")
    stale = _generation_stale(obj)
    if stale is not None:
        return stale

    replicas = _int_field(obj, 1, "spec", "replicas")
    ready = _int_field(obj, 0, "status", "readyReplicas")
    current = _int_field(obj, 0, "status", "currentReplicas")
    update_strategy = get_nested(obj, "spec", "updateStrategy", "type", default="RollingUpdate")

    if ready < replicas:
        return _in_progress(f"ready replicas {ready}/{replicas}")
    if update_strategy == "RollingUpdate":
        if status.get("updateRevision") and status.get("currentRevision") != status.get("updateRevision"):
            return _in_progress("rolling update in progress")
        if current < replicas:
            return _in_progress(f"current replicas {current}/{replicas}")
    return _ready(f"{ready}/{replicas} replicas ready")


def daemonset_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    if not status:
        return _in_progress("no status reported yet")
    stale = _generation_stale(obj)
    if stale is not None:
        return stale

    desired = _int_field(obj, 0, "status", "desiredNumberScheduled")
    updated = _int_field(obj, 0, "status", "updatedNumberScheduled")
    ready = _int_field(obj, 0, "status", "numberReady")
    available = _int_field(obj, 0, "status", "numberAvailable")
    if updated < desired:
        return _in_progress(f"updated pods {updated}/{desired}")
    if ready < desired or available < desired:
        return _in_progress(f"ready pods {ready}/{desired}")
    return _ready(f"{ready}/{desired} pods ready")


def replicaset_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    if not status:
        return _in_progress("no status reported yet")
    stale = _generation_stale(obj)
    if stale is not None:
        return stale

    replicas = _int_field(obj, 1, "spec", "replicas")
    ready = _int_field(obj, 0, "status", "readyReplicas")
    available = _int_field(obj, 0, "status", "availableReplicas")
    if ready < replicas or available < replicas:
        return _in_progress(f"ready replicas {ready}/{replicas}")
    return _ready(f"{ready}/{replicas} replicas ready")


def pod_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    phase = status.get("phase", "")
    if phase == "Succeeded":
        return _ready("pod succeeded")
    if phase == "Running":
        ready = _condition(status, "Ready")
        if ready and ready.get("status") == "True":
            return _ready("pod running and ready")
        return _in_progress("pod running but not ready")
    if phase in ("", "Pending"):
        return _in_progress("pod pending")
    if phase == "Failed":
        return _in_progress(f"pod failed: {status.get('reason', '')}".rstrip(": "))
    return InterpretedStatus(ComputedStatus.UNKNOWN, f"pod phase {phase}")


def job_status(obj: dict[str, Any]) -> InterpretedStatus:
    status = _status_block(obj)
    complete = _condition(status, "Complete")
    if complete and complete.get("status") == "True":
        return _ready("job complete")
    failed = _condition(status, "Failed")
    if failed and failed.get("status") == "True":
        return _in_progress(f"job failed: {failed.get('message', '')}")
    succeeded = _int_field(obj, 0, "status", "succeeded")
    completions = _int_field(obj, 1, "spec", "completions")
    return _in_progress(f"succeeded {succeeded}/{completions}")


def pvc_status(obj: dict[str, Any]) -> InterpretedStatus:
    phase = _status_block(obj).get("phase", "")
    if phase == "Bound":
        return _ready("claim bound")
    return _in_progress(f"claim phase {phase or 'Pending'}")


def service_status(obj: dict[str, Any]) -> InterpretedStatus:
    if get_nested(obj, "spec", "type", default="ClusterIP") != "LoadBalancer":
        return _ready()
    ingress = get_nested(obj, "status", "loadBalancer", "ingress", default=None)
    if ingress:
        return _ready("load balancer provisioned")
    return _in_progress("waiting for load balancer ingress")


def generic_status(obj: dict[str, Any]) -> InterpretedStatus:
    """Fallback for kinds without a dedicated interpreter.

    Status-less kinds (ConfigMap, Secret, ServiceAccount, ...) are Ready as
    soon as they exist.  Otherwise a stale observedGeneration means
    InProgress and a ``Ready`` condition decides.
    """
    status = _status_block(obj)
    if not status:
        return _ready()
    stale = _generation_stale(obj)
    if stale is not None:
        return stale
    ready = _condition(status, "Ready")
    if ready is None:
        return _ready()
    value = ready.get("status")
    if value == "True":
        return _ready(ready.get("message", ""))
    if value == "False":
        return _in_progress(ready.get("message", "") or ready.get("reason", "") or "not ready")
    return InterpretedStatus(ComputedStatus.UNKNOWN, ready.get("message", ""))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class InterpreterRegistry:
    """Maps kinds to interpreters, with a fallback for everything else."""

    def __init__(self, fallback: StatusInterpreter = generic_status) -> None:
        self._by_kind: dict[str, StatusInterpreter] = {}
        self._fallback = fallback

    def register(self, kind: str, interpreter: StatusInterpreter) -> None:
        self._by_kind[kind] = interpreter

    def interpreter_for(self, kind: str) -> StatusInterpreter:
        return self._by_kind.get(kind, self._fallback)

    def interpret(self, obj: dict[str, Any]) -> InterpretedStatus:
        """Run the matching interpreter.

        Raises:
            StatusInterpretationError: if the document cannot be interpreted.
        """
        if not isinstance(obj, dict):
            raise StatusInterpretationError(f"cannot interpret non-object {type(obj).__name__}")
        interpreter = self.interpreter_for(str(obj.get("kind", "")))
        try:
            return interpreter(obj)
        except StatusInterpretationError:
            raise
        except (TypeError, ValueError, AttributeError) as exc:
            raise StatusInterpretationError(f"{object_id(obj)}: {exc}") from exc


def default_registry() -> InterpreterRegistry:
    """Registry with the built-in interpreters for core workload kinds."""
    registry = InterpreterRegistry()
    registry.register("Deployment", deployment_status)
    registry.register("StatefulSet", statefulset_status)
    registry.register("DaemonSet", daemonset_status)
    registry.register("ReplicaSet", replicaset_status)
    registry.register("Pod", pod_status)
    registry.register("Job", job_status)
    registry.register("PersistentVolumeClaim", pvc_status)
    registry.register("Service", service_status)
    return registry
