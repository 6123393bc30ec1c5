"""
Legal Gateway - Main Application Entry Point

This module provides the FastAPI application for the Legal Gateway
service: one tool namespace over local court-decision and business
registry handlers and the remote parliament and registry services.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from legal_gateway.api.middleware.logging import RequestLoggingMiddleware
from legal_gateway.api.routes.health import router as health_router
from legal_gateway.api.routes.tools import router as tools_router
from legal_gateway.clients.court_search import CourtSearchClient
from legal_gateway.clients.remote_service import RemoteServiceClient
from legal_gateway.core.config import RemoteServicesConfig, Settings, get_settings
from legal_gateway.observability.logging import configure_logging, get_logger
from legal_gateway.observability.metrics import MetricsMiddleware, get_metrics_app
from legal_gateway.services.cost_tracker import CostTracker
from legal_gateway.services.document_chain import DocumentChainBuilder
from legal_gateway.services.document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    RedisDocumentStore,
)
from legal_gateway.services.ingestion import BulkIngestionPipeline
from legal_gateway.services.party_count import PartyCaseCounter
from legal_gateway.tools.builtin import (
    BusinessRegistryTools,
    CourtDecisionTools,
    register_builtin_tools,
)
from legal_gateway.tools.registry import (
    ToolRegistry,
    reset_tool_registry,
    set_tool_registry,
)

APP_NAME = "Legal Gateway"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Tool gateway over Ukrainian court, registry and parliamentary data"

logger = get_logger(__name__)


def get_cors_origins(settings: Settings) -> list[str]:
    """
    Allowed CORS origins: everything in development, otherwise the
    comma-separated LEGAL_GATEWAY_CORS_ORIGINS list (empty blocks all).
    """
    if settings.environment == "development":
        return ["*"]
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


# =============================================================================
# Component Wiring
# =============================================================================


@dataclass
class GatewayComponents:
    """Everything the lifespan builds and must close."""

    registry: ToolRegistry
    remote_client: RemoteServiceClient
    search_client: CourtSearchClient
    store: DocumentStore
    cost_tracker: Optional[CostTracker] = None

    async def aclose(self) -> None:
        await self.search_client.close()
        await self.remote_client.close()


def build_gateway(
    settings: Settings,
    redis_client: Optional[aioredis.Redis] = None,
    remote_http_client: Optional[httpx.AsyncClient] = None,
    search_http_client: Optional[httpx.AsyncClient] = None,
    page_http_client: Optional[httpx.AsyncClient] = None,
) -> GatewayComponents:
    """
    Wire clients, services, handlers and the registry from settings.

    Without Redis the document store is in-memory and neither the
    full-text cache nor cost tracking is active.
    """
    cost_tracker = CostTracker(redis_client) if redis_client is not None else None
    store: DocumentStore = (
        RedisDocumentStore(redis_client) if redis_client is not None else InMemoryDocumentStore()
    )

    remote_client = RemoteServiceClient(
        RemoteServicesConfig.from_settings(settings),
        http_client=remote_http_client,
        cost_tracker=cost_tracker,
    )
    search_client = CourtSearchClient.from_settings(
        settings,
        redis=redis_client,
        http_client=search_http_client,
        page_client=page_http_client,
    )

    court_tools = CourtDecisionTools(
        search_client,
        store,
        pipeline=BulkIngestionPipeline(
            search_client,
            store,
            cost_tracker=cost_tracker,
            per_page_cost_usd=settings.per_page_cost_usd,
            max_page_size=settings.max_page_size,
            lookback_years=settings.ingest_default_lookback_years,
        ),
        chain_builder=DocumentChainBuilder(
            search_client, early_exit_threshold=settings.chain_early_exit_threshold
        ),
        party_counter=PartyCaseCounter(
            search_client,
            per_page_cost_usd=settings.per_page_cost_usd,
            safety_limit=settings.party_count_safety_limit,
            date_filter_max_pages=settings.party_count_date_filter_max_pages,
        ),
        per_page_cost_usd=settings.per_page_cost_usd,
    )

    registry = ToolRegistry(remote_client)
    register_builtin_tools(registry, [court_tools, BusinessRegistryTools(remote_client)])

    return GatewayComponents(
        registry=registry,
        remote_client=remote_client,
        search_client=search_client,
        store=store,
        cost_tracker=cost_tracker,
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the gateway on startup; close owned clients on shutdown."""
    settings = get_settings()
    configure_logging(level=settings.log_level, force=True)
    logger.info(
        "service starting",
        service=settings.service_name,
        version=APP_VERSION,
        environment=settings.environment,
    )

    redis_client = (
        aioredis.from_url(settings.redis_url, decode_responses=True)
        if settings.redis_url
        else None
    )
    components = build_gateway(settings, redis_client)
    set_tool_registry(components.registry)

    app.state.redis = redis_client
    app.state.cost_tracker = components.cost_tracker
    app.state.components = components
    app.state.initialized = True

    yield

    logger.info("service shutting down")
    app.state.initialized = False
    await components.aclose()
    if redis_client is not None:
        await redis_client.aclose()
    reset_tool_registry()


# =============================================================================
# Application
# =============================================================================


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(MetricsMiddleware)

    application.include_router(health_router)
    application.include_router(tools_router)
    application.mount("/metrics", get_metrics_app())

    @application.get("/", tags=["Info"])
    async def root() -> dict[str, Any]:
        """Root endpoint returning basic service information."""
        return {
            "service": APP_NAME,
            "version": APP_VERSION,
            "docs": "/docs" if settings.environment != "production" else "disabled",
        }

    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    run()
