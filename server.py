"""
API server for the content repurposer.

Assembles the FastAPI application: logging, Sentry, middleware, exception
handlers, routes and the service container that owns every long-lived
component.
"""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from app.auth import APIKeyStore
from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    content_router,
    health_router,
    repurpose_router,
    tiers_router,
    usage_router,
)
from repurposer import __version__
from repurposer.config import Settings, get_settings
from repurposer.container import ServiceContainer
from repurposer.utils.logging import setup_logging

load_dotenv()

logger = logging.getLogger("server")

SENSITIVE_KEYS = (
    "password", "api_key", "apikey", "api-key", "secret", "token",
    "authorization", "bearer", "credential", "private",
)


# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================


def filter_sensitive_breadcrumbs(crumb, hint):
    """Strip API keys and authorization headers from Sentry breadcrumbs."""
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict):
            headers = data.get("headers")
            if isinstance(headers, dict):
                for key in list(headers.keys()):
                    if any(s in key.lower() for s in SENSITIVE_KEYS):
                        headers[key] = "[FILTERED]"
            if "url" in data:
                for key in SENSITIVE_KEYS:
                    pattern = re.compile(f"({re.escape(key)}=)[^&]*", re.IGNORECASE)
                    data["url"] = pattern.sub(r"\1[FILTERED]", data["url"])

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


def init_sentry(settings: Settings) -> None:
    if not settings.is_sentry_configured:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")


# =============================================================================
# Application Factory
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize storage on startup and release shared resources on shutdown."""
    container: ServiceContainer = app.state.container
    await container.startup()
    if not container.schema.ready:
        logger.error("Storage not ready; repurpose requests will answer 503")
    yield
    await container.shutdown()


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
    api_key_store: Optional[APIKeyStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment.
        container: Pre-built container (tests pass one with fakes).
        api_key_store: API key store; defaults to the file store from settings.
    """
    settings = settings or get_settings()

    setup_logging(
        service_name="content-repurposer",
        log_level=settings.logging.log_level,
        use_json=settings.is_production or settings.logging.log_format_json,
    )
    logger.info("Configuration loaded", extra={"config": settings.get_config_summary()})
    init_sentry(settings)

    app = FastAPI(
        title="Content Repurposer API",
        description=(
            "Turns long-form content into platform-specific variants, "
            "enforcing subscription tiers, quotas and overage billing."
        ),
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Health checks and system status"},
            {"name": "repurpose", "description": "Content repurposing"},
            {"name": "tiers", "description": "Subscription tiers and AI providers"},
            {"name": "usage", "description": "Usage, quota and overage reporting"},
            {"name": "content", "description": "Saved content"},
        ],
    )

    app.state.container = container or ServiceContainer.build(settings)
    app.state.api_key_store = api_key_store or APIKeyStore(settings.security.api_key_storage_path)

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-API-Key",
            "X-Request-ID",
            "Accept",
            "Origin",
        ],
        expose_headers=["X-Request-ID", "X-Response-Time"],
        max_age=600,
    )

    # Added last so it wraps every other middleware
    if settings.logging.request_logging_enabled:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(tiers_router)
    app.include_router(repurpose_router)
    app.include_router(usage_router)
    app.include_router(content_router)

    return app


app = create_app()


if __name__ == "__main__":
    reload_enabled = os.environ.get("UVICORN_RELOAD", "false").lower() == "true"
    port = int(os.environ.get("PORT") or os.environ.get("BACKEND_PORT", "8000"))
    uvicorn.run("server:app", host="0.0.0.0", port=port, reload=reload_enabled)
