"""
Tool Registry - routing and dispatch

The registry owns the aggregate tool namespace. Each name resolves to
exactly one Route:
- local routes are derived when a ToolHandler registers
- remote routes are declared statically (STATIC_REMOTE_ROUTES)

Execution tries the local handler first, then the static remote route
through the Remote Service Client. An unknown name is a normal outcome
and returns None.

The remote capability catalog is fetched once per process per provider
and memoized in RemoteCatalogCache; concurrent first callers share one
fetch.

Pattern: Service Registry with tagged family dispatch (name -> ToolFamily -> ToolHandler)
Pattern: Single-flight cache (asyncio.Lock)
Pattern: Singleton for global registry access
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from legal_gateway.clients.remote_service import RemoteServiceClient
from legal_gateway.core.exceptions import (
    DuplicateToolError,
    RemoteServiceError,
    ServiceNotConfiguredError,
)
from legal_gateway.models.domain import (
    PROVIDER_PREFIXES,
    CapabilityDescriptor,
    Provider,
    Route,
    ToolFamily,
    ToolResult,
)
from legal_gateway.observability.logging import tool_context
from legal_gateway.observability.metrics import record_tool_execution
from legal_gateway.tools.base import EventCallback, ToolHandler

logger = logging.getLogger(__name__)


# =============================================================================
# Static Remote Routes
# =============================================================================

STATIC_REMOTE_ROUTES: tuple[Route, ...] = (
    Route.remote(Provider.RADA, "search_parliament_bills"),
    Route.remote(Provider.RADA, "get_deputy_info"),
    Route.remote(Provider.RADA, "search_legislation_text"),
    Route.remote(Provider.RADA, "analyze_voting_record"),
    Route.remote(Provider.OPENREYESTR, "search_entities"),
    Route.remote(Provider.OPENREYESTR, "get_entity_details"),
    Route.remote(Provider.OPENREYESTR, "search_beneficiaries"),
    Route.remote(Provider.OPENREYESTR, "get_by_edrpou"),
    Route.remote(Provider.OPENREYESTR, "get_statistics"),
)

REMOTE_PROVIDERS = (Provider.RADA, Provider.OPENREYESTR)


# =============================================================================
# Remote Catalog Cache
# =============================================================================


class CatalogState(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"


class RemoteCatalogCache:
    """
    Process-wide memo of remote capability descriptors.

    NOT_LOADED -> LOADING -> LOADED. A provider whose fetch fails
    contributes zero descriptors and is not retried until invalidate().

    Example:
        >>> cache = RemoteCatalogCache(remote_client)
        >>> descriptors = await cache.get()
        >>> cache.state
        <CatalogState.LOADED: 'loaded'>
    """

    def __init__(
        self,
        remote_client: RemoteServiceClient,
        providers: tuple[Provider, ...] = REMOTE_PROVIDERS,
    ) -> None:
        self._client = remote_client
        self._providers = providers
        self._lock = asyncio.Lock()
        self._state = CatalogState.NOT_LOADED
        self._descriptors: list[CapabilityDescriptor] = []

    @property
    def state(self) -> CatalogState:
        return self._state

    async def get(self) -> list[CapabilityDescriptor]:
        if self._state is CatalogState.LOADED:
            return list(self._descriptors)

        async with self._lock:
            # Another caller may have loaded it while we waited.
            if self._state is CatalogState.LOADED:
                return list(self._descriptors)

            self._state = CatalogState.LOADING
            try:
                descriptors = await self._load()
            except BaseException:
                # Cancelled or unexpected failure: the next caller fetches again.
                self._state = CatalogState.NOT_LOADED
                raise

            self._descriptors = descriptors
            self._state = CatalogState.LOADED
            return list(descriptors)

    async def _load(self) -> list[CapabilityDescriptor]:
        descriptors: list[CapabilityDescriptor] = []
        for provider in self._providers:
            try:
                fetched = await self._client.fetch_catalog(provider)
            except RemoteServiceError as e:
                logger.warning("Remote catalog unavailable for %s: %s", provider.value, e)
                continue
            logger.info("Loaded %d remote tools from %s", len(fetched), provider.value)
            descriptors.extend(fetched)
        return descriptors

    def invalidate(self) -> None:
        self._descriptors = []
        self._state = CatalogState.NOT_LOADED


# =============================================================================
# ToolRegistry
# =============================================================================


class ToolRegistry:
    """
    Aggregate namespace of local and remote tools.

    Attributes:
        _routes: Tool name -> Route (exactly one per name)
        _families: Local tool name -> ToolFamily
        _handlers: ToolFamily -> ToolHandler

    Example:
        >>> registry = ToolRegistry(remote_client)
        >>> registry.register_handler(CourtDecisionTools(...))
        >>> result = await registry.execute_tool("get_case_documents_chain", {...})
    """

    def __init__(
        self,
        remote_client: Optional[RemoteServiceClient] = None,
        static_routes: tuple[Route, ...] = STATIC_REMOTE_ROUTES,
    ) -> None:
        self._remote_client = remote_client
        self._routes: dict[str, Route] = {route.tool_name: route for route in static_routes}
        self._families: dict[str, ToolFamily] = {}
        self._handlers: dict[ToolFamily, ToolHandler] = {}
        self._catalog = RemoteCatalogCache(remote_client) if remote_client else None

    # =========================================================================
    # Registration
    # =========================================================================

    def register_handler(self, handler: ToolHandler) -> None:
        """
        Register every tool a handler declares.

        Registration is all-or-nothing: no name is recorded if any clashes.

        Raises:
            DuplicateToolError: If a name is already claimed by a handler,
                a static remote route, or appears twice in the handler
        """
        names = handler.tool_names()
        if handler.family in self._handlers:
            raise DuplicateToolError(
                names[0] if names else handler.family.value,
                message=f"Tool family '{handler.family.value}' is already registered",
            )

        claimed: set[str] = set()
        for name in names:
            if name in self._families or name in claimed:
                raise DuplicateToolError(name)
            route = self._routes.get(name)
            if route is not None and not route.is_local:
                raise DuplicateToolError(
                    name,
                    message=f"Tool '{name}' is already routed to {route.provider.value}",
                )
            claimed.add(name)

        self._handlers[handler.family] = handler
        for name in names:
            self._families[name] = handler.family
            self._routes.setdefault(name, Route.local(name))
        logger.info("Registered %d %s tools", len(names), handler.family.value)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_route(self, name: str) -> Optional[Route]:
        return self._routes.get(name)

    def _local_handler(self, name: str) -> Optional[ToolHandler]:
        family = self._families.get(name)
        return self._handlers.get(family) if family is not None else None

    def supports_streaming(self, name: str) -> bool:
        handler = self._local_handler(name)
        return handler is not None and handler.supports_streaming(name)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_tool(self, name: str, args: dict[str, Any]) -> Optional[ToolResult]:
        """
        Execute a tool by name.

        Returns:
            The tool result, or None when no route exists

        Raises:
            ServiceNotConfiguredError: Remote provider has no URL or key
            RemoteServiceError: Remote call failed
            LegalGatewayException: A local handler failed
        """
        handler = self._local_handler(name)
        if handler is not None:
            return await self._timed(name, Provider.LOCAL, handler.execute_tool(name, args))

        route = self._routes.get(name)
        if route is not None and not route.is_local:
            return await self._timed(name, route.provider, self._execute_remote(route, args))

        record_tool_execution(name, "none", "not_found", 0.0)
        logger.info("Tool not found: %s", name)
        return None

    async def execute_tool_stream(
        self, name: str, args: dict[str, Any], on_event: EventCallback
    ) -> Optional[ToolResult]:
        """
        Execute a streaming-capable local tool, forwarding progress events.

        Remote routes never stream.

        Returns:
            The final result, or None when the tool cannot stream
        """
        if not self.supports_streaming(name):
            return None
        handler = self._local_handler(name)
        return await self._timed(
            name, Provider.LOCAL, handler.execute_tool_stream(name, args, on_event)
        )

    async def _execute_remote(self, route: Route, args: dict[str, Any]) -> ToolResult:
        if self._remote_client is None:
            raise ServiceNotConfiguredError(route.provider.value)
        body = await self._remote_client.execute(route, args)
        try:
            return ToolResult.from_remote(body)
        except ValidationError as e:
            raise RemoteServiceError(
                f"malformed content: {e.error_count()} invalid field(s)",
                provider=route.provider.value,
                operation=route.service_name,
            ) from e

    async def _timed(self, name: str, provider: Provider, call: Any) -> Optional[ToolResult]:
        started = time.perf_counter()
        try:
            with tool_context(name):
                result = await call
        except Exception:
            record_tool_execution(name, provider.value, "error", time.perf_counter() - started)
            raise
        record_tool_execution(name, provider.value, "success", time.perf_counter() - started)
        return result

    # =========================================================================
    # Catalog
    # =========================================================================

    def get_local_tool_definitions(self) -> list[CapabilityDescriptor]:
        """Local descriptors, recomputed on every call."""
        definitions: list[CapabilityDescriptor] = []
        for handler in self._handlers.values():
            definitions.extend(handler.get_tool_definitions())
        return definitions

    async def get_remote_tool_definitions(self) -> list[CapabilityDescriptor]:
        if self._catalog is None:
            return []
        return await self._catalog.get()

    async def get_all_capability_descriptors(self) -> list[CapabilityDescriptor]:
        return self.get_local_tool_definitions() + await self.get_remote_tool_definitions()

    async def get_tools_by_provider(self) -> dict[str, list[CapabilityDescriptor]]:
        remote = await self.get_remote_tool_definitions()
        grouped: dict[str, list[CapabilityDescriptor]] = {
            "backend": self.get_local_tool_definitions()
        }
        for provider in REMOTE_PROVIDERS:
            prefix = PROVIDER_PREFIXES[provider]
            grouped[provider.value] = [d for d in remote if d.name.startswith(prefix)]
        return grouped

    async def get_tool_counts(self) -> dict[str, int]:
        grouped = await self.get_tools_by_provider()
        counts = {key: len(descriptors) for key, descriptors in grouped.items()}
        counts["total"] = sum(counts.values())
        return counts

    def invalidate_remote_catalog(self) -> None:
        if self._catalog is not None:
            self._catalog.invalidate()


# =============================================================================
# Singleton Access
# =============================================================================

_registry: Optional[ToolRegistry] = None


def get_tool_registry() -> ToolRegistry:
    """
    Get the global tool registry instance.

    The application lifespan installs a fully wired registry with
    set_tool_registry(); before that an empty, local-only one is created.
    """
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
    return _registry


def set_tool_registry(registry: ToolRegistry) -> None:
    global _registry
    _registry = registry


def reset_tool_registry() -> None:
    """
    Reset the global tool registry.

    Primarily used for testing to ensure a clean state.
    """
    global _registry
    _registry = None
