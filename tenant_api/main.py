"""FastAPI application entrypoint."""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from tenant_api.api.organizations import router as organizations_router
from tenant_api.core.config import AppSettings
from tenant_api.core.config import get_app_settings
from tenant_api.core.envelope import EnvelopeBuilder
from tenant_api.core.errors import register_error_handlers
from tenant_api.core.logging import configure_logging
from tenant_api.core.middleware import request_context_middleware
from tenant_api.core.responses import ApiResponses
from tenant_api.core.responses import get_api_responses
from tenant_api.db import models as _models  # noqa: F401

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the API application for the given settings."""
    settings = settings or get_app_settings()

    app = FastAPI(title="Tenant API", version=settings.api_version)
    app.state.settings = settings
    app.state.envelope_builder = EnvelopeBuilder(settings)

    register_error_handlers(app)
    app.middleware("http")(request_context_middleware)
    app.include_router(organizations_router)

    @app.get("/health")
    def health(responses: ApiResponses = Depends(get_api_responses)) -> JSONResponse:
        """Health check endpoint for service readiness."""
        return responses.success("Service is healthy", {"status": "ok"})

    logger.info("Application created with settings=%s", settings.safe_for_logging())
    return app


configure_logging(get_app_settings().log_level)
app = create_app()
