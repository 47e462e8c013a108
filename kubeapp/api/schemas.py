"""Pydantic models for the webhook and health endpoints.

Only the AdmissionReview fields the webhooks read or write are modelled;
everything else the API server sends is accepted and ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    uid: str
    operation: str = "CREATE"
    name: str = ""
    namespace: str = ""
    object: dict[str, Any] | None = None
    old_object: dict[str, Any] | None = Field(default=None, alias="oldObject")


class AdmissionStatus(BaseModel):
    code: int
    message: str
    reason: str = ""


class AdmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool
    status: AdmissionStatus | None = None
    patch_type: str | None = Field(default=None, alias="patchType")
    patch: str | None = None


class AdmissionReview(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    api_version: str = Field(default="admission.k8s.io/v1", alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    driver_running: bool | None = None
    queue_depth: int | None = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
