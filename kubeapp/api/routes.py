"""HTTP routes: health, readiness, Prometheus metrics and admission webhooks."""

from __future__ import annotations

import base64
import json
from typing import Any

import structlog
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubeapp.admission import defaulting_patch, validate_application
from kubeapp.api.schemas import (
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
    AdmissionStatus,
    ErrorResponse,
    HealthResponse,
)
from kubeapp.errors import ValidationError

_log = structlog.get_logger(component="api.routes")

router = APIRouter()

MUTATE_PATH = "/mutate-applications-app-io-v1beta1-application"
VALIDATE_PATH = "/validate-applications-app-io-v1beta1-application"


def _review(response: AdmissionResponse) -> dict[str, Any]:
    return AdmissionReview(response=response).model_dump(by_alias=True, exclude_none=True)


def _bad_review() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="INVALID_ADMISSION_REVIEW", detail="request is required").model_dump(),
    )


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    from kubeapp import __version__

    return HealthResponse(status="ok", version=__version__)


@router.get("/readyz", response_model=HealthResponse)
async def readyz(request: Request) -> JSONResponse:
    from kubeapp import __version__

    driver = request.app.state.driver
    if driver is None:
        body = HealthResponse(status="ok", version=__version__)
        return JSONResponse(status_code=200, content=body.model_dump(exclude_none=True))

    ready = bool(driver.running)
    body = HealthResponse(
        status="ok" if ready else "starting",
        version=__version__,
        driver_running=ready,
        queue_depth=driver.depth,
    )
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump(exclude_none=True))


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post(MUTATE_PATH)
async def mutate(review: AdmissionReview) -> Any:
    """Defaulting webhook: returns a base64 JSONPatch adding missing defaults."""
    if review.request is None:
        return _bad_review()
    req: AdmissionRequest = review.request
    patch = defaulting_patch(req.object or {})
    response = AdmissionResponse(uid=req.uid, allowed=True)
    if patch:
        response.patch_type = "JSONPatch"
        response.patch = base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii")
    _log.debug("admission_mutate", name=req.name, namespace=req.namespace, operations=len(patch))
    return _review(response)


@router.post(VALIDATE_PATH)
async def validate(review: AdmissionReview) -> Any:
    """Validating webhook: rejects Applications beyond the history or resource caps."""
    if review.request is None:
        return _bad_review()
    req: AdmissionRequest = review.request
    if req.operation == "DELETE" or req.object is None:
        return _review(AdmissionResponse(uid=req.uid, allowed=True))
    try:
        validate_application(req.object)
    except ValidationError as exc:
        return _review(
            AdmissionResponse(
                uid=req.uid,
                allowed=False,
                status=AdmissionStatus(code=422, message=str(exc), reason="Invalid"),
            )
        )
    return _review(AdmissionResponse(uid=req.uid, allowed=True))
