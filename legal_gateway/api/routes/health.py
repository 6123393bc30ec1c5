"""
Health Router

Liveness and readiness endpoints. Readiness pings Redis when the gateway
runs with one; without Redis the in-memory store is used and the check
passes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import RedisError

from legal_gateway.core.config import get_settings

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    checks: dict[str, bool]


# =============================================================================
# Health Service
# =============================================================================


class HealthService:
    """
    Dependency checks behind the readiness endpoint.

    Accepts a Redis double in tests.
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis = redis_client

    async def check_redis(self) -> bool:
        if self._redis is None:
            logger.debug("Redis not configured, skipping health check")
            return True
        try:
            await self._redis.ping()
            return True
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed: %s", e)
            return False


def get_health_service(request: Request) -> HealthService:
    return HealthService(getattr(request.app.state, "redis", None))


# =============================================================================
# Router
# =============================================================================

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=APP_VERSION)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    health_service: HealthService = Depends(get_health_service),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Returns 503 when a configured dependency is unreachable.
    """
    checks = {
        "redis": await health_service.check_redis(),
        "court_search_token": bool(get_settings().search_tokens()),
    }
    ready = checks["redis"]
    if not ready:
        response.status_code = 503
    return ReadinessResponse(status="ready" if ready else "not_ready", checks=checks)
