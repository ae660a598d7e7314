"""
Health check and root endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter, Depends

from repurposer import __version__
from repurposer.container import ServiceContainer

from ..dependencies import get_container

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def get_database_status(container: ServiceContainer) -> Dict[str, Any]:
    """
    Check Postgres connectivity and schema readiness.

    The in-memory backend is always reported as connected.
    """
    if container.database is None:
        return {
            "configured": False,
            "connected": True,
            "backend": "memory",
            "schema_ready": container.schema.ready,
        }

    start_time = datetime.now()
    connected = await container.database.ping()
    latency_ms = (datetime.now() - start_time).total_seconds() * 1000

    status: Dict[str, Any] = {
        "configured": True,
        "connected": connected,
        "backend": "postgres",
        "schema_ready": container.schema.ready,
        "latency_ms": round(latency_ms, 2),
    }
    if not container.schema.ready:
        status["error"] = "Schema not initialized"
    return status


async def get_redis_status(container: ServiceContainer) -> Dict[str, Any]:
    if container.redis is None:
        return {"configured": False, "connected": False}
    health = await container.redis.health_check()
    return {"configured": True, **health}


def get_sentry_status(container: ServiceContainer) -> Dict[str, Any]:
    configured = container.settings.is_sentry_configured
    return {
        "configured": configured,
        "active": sentry_sdk.get_client().is_active() if configured else False,
        "environment": container.settings.sentry.sentry_environment if configured else None,
    }


def _service_status(info: Dict[str, Any]) -> str:
    if info.get("connected") or info.get("active"):
        return "up"
    if not info.get("configured"):
        return "unconfigured"
    return "down"


@router.get("/")
async def root():
    return {"message": "Content Repurposer API", "version": __version__}


@router.get("/health", summary="System health check")
async def health_check(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    Storage must be ready for the service to be healthy; Redis and Sentry
    are optional and only reported.
    """
    db_status = await get_database_status(container)
    redis_status = await get_redis_status(container)
    sentry_status = get_sentry_status(container)
    providers = container.router.available_providers()

    is_healthy = bool(db_status.get("connected")) and bool(db_status.get("schema_ready"))

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": container.settings.security.environment,
        "services": {
            "database": {
                "status": "up" if is_healthy else _service_status(db_status),
                "backend": db_status["backend"],
                "latency_ms": db_status.get("latency_ms"),
            },
            "redis": {"status": _service_status(redis_status)},
            "sentry": {"status": _service_status(sentry_status)},
            "ai": {
                "status": "up" if providers else "unconfigured",
                "providers": providers,
            },
        },
    }


@router.get("/health/db")
async def database_health(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": await get_database_status(container),
    }


@router.get("/health/redis")
async def redis_health(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "redis": await get_redis_status(container),
    }
