"""FastAPI application factory for kubeapp.

Usage::

    from kubeapp.api.app import create_app

    app = create_app(driver=driver, config=config)

The same factory serves the production bootstrap (``kubeapp.app``) and the
unit tests, which call it without a driver.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kubeapp.api.routes import router
from kubeapp.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")


def create_app(driver: Any = None, config: Any = None) -> FastAPI:
    """Create and configure the kubeapp FastAPI application.

    Args:
        driver: ReconcileDriver whose state backs ``/readyz``.  ``None``
                reports ready unconditionally (webhook-only deployments).
        config: KubeAppConfig, kept on ``app.state`` for handlers.
    """
    from kubeapp import __version__

    app = FastAPI(
        title="kubeapp",
        summary="Application controller webhooks and health endpoints",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )
    app.state.driver = driver
    app.state.config = config
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map malformed AdmissionReview bodies to the error envelope."""
        errors = exc.errors()
        detail = str(errors[0].get("msg", "")) if errors else ""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_ADMISSION_REVIEW", detail=detail).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="INTERNAL_ERROR", detail="An unexpected error occurred.").model_dump(),
        )

    return app
