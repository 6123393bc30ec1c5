"""
Remote Service Client

This module proxies tool calls to the remote tool services (parliamentary
data and business registry) and discovers their capability catalogs.

Wire contract (consumed):
- POST {base_url}/api/tools/{operation}  body {"arguments": {...}}
- GET  {base_url}/api/tools              -> {"tools": [{name, description, inputSchema}]}
- Authorization: Bearer <api_key>

Pattern: Client adapter for microservice communication
Pattern: Configuration struct injected once (RemoteServicesConfig)
"""

import logging
from typing import Any, Optional

import httpx

from legal_gateway.clients.http import create_http_client
from legal_gateway.core.config import ProviderConfig, RemoteServicesConfig
from legal_gateway.core.exceptions import RemoteServiceError, ServiceNotConfiguredError
from legal_gateway.models.domain import (
    PROVIDER_LABELS,
    PROVIDER_PREFIXES,
    CapabilityDescriptor,
    Provider,
    Route,
)
from legal_gateway.observability.logging import get_correlation_id
from legal_gateway.observability.metrics import record_remote_cost
from legal_gateway.services.cost_tracker import CostTracker, CostTrackerError

logger = logging.getLogger(__name__)


def extract_reported_cost(body: Any) -> Optional[float]:
    """Cost a remote service reports at cost_tracking.actual_cost.totals.cost_usd."""
    if not isinstance(body, dict):
        return None
    try:
        cost = body["cost_tracking"]["actual_cost"]["totals"]["cost_usd"]
    except (KeyError, TypeError):
        return None
    return float(cost) if isinstance(cost, (int, float)) else None


def catalog_descriptor(provider: Provider, tool: Any) -> Optional[CapabilityDescriptor]:
    """
    Map one catalog entry to a prefixed descriptor.

    Returns None for entries without a string name. A missing or
    non-object input schema falls back to an empty object schema.
    """
    if not isinstance(tool, dict):
        return None
    name = tool.get("name")
    if not isinstance(name, str) or not name:
        return None
    schema = tool.get("inputSchema") or tool.get("input_schema")
    if not isinstance(schema, dict):
        schema = {"type": "object", "properties": {}}
    description = tool.get("description")
    if not isinstance(description, str):
        description = ""
    return CapabilityDescriptor(
        name=f"{PROVIDER_PREFIXES[provider]}{name}",
        description=f"{PROVIDER_LABELS[provider]}{description}",
        input_schema=schema,
    )


class RemoteServiceClient:
    """
    Client for remote tool-serving providers.

    Example:
        >>> config = RemoteServicesConfig.from_settings(get_settings())
        >>> async with RemoteServiceClient(config) as client:
        ...     route = Route.remote(Provider.RADA, "get_deputy_info")
        ...     result = await client.execute(route, {"name": "..."})
    """

    def __init__(
        self,
        config: RemoteServicesConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        cost_tracker: Optional[CostTracker] = None,
    ) -> None:
        """
        Initialize RemoteServiceClient.

        Args:
            config: Per-provider URLs, keys and timeouts
            http_client: Optional pre-configured HTTP client (for testing)
            cost_tracker: Optional tracker for costs reported by providers
        """
        self._config = config
        self._cost_tracker = cost_tracker
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            self._client = create_http_client(
                timeout_seconds=config.execute_timeout_seconds,
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close the HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteServiceClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Configuration Resolution
    # =========================================================================

    def is_configured(self, provider: Provider) -> bool:
        provider_config = self._config.for_provider(provider)
        return provider_config is not None and provider_config.is_configured

    def _resolve(self, provider: Provider) -> ProviderConfig:
        """
        Connection values for a provider.

        Raises:
            ServiceNotConfiguredError: If URL or key is missing
        """
        provider_config = self._config.for_provider(provider)
        if provider_config is None or not provider_config.is_configured:
            raise ServiceNotConfiguredError(provider.value)
        return provider_config

    def _headers(self, provider_config: ProviderConfig) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {provider_config.api_key.get_secret_value().strip()}",
            "Accept": "application/json",
        }
        parent_request_id = get_correlation_id()
        if parent_request_id:
            headers["X-Parent-Request-ID"] = parent_request_id
        return headers

    # =========================================================================
    # Execute
    # =========================================================================

    async def execute(self, route: Route, args: dict[str, Any]) -> Any:
        """
        Execute a remote operation.

        Args:
            route: Remote route naming provider and operation
            args: Tool arguments, sent as {"arguments": args}

        Returns:
            The ``result`` field of the response body when present,
            otherwise the whole body

        Raises:
            ServiceNotConfiguredError: If the provider has no URL or key
            RemoteServiceError: On timeout, non-2xx or network failure
        """
        provider_config = self._resolve(route.provider)
        url = f"{provider_config.normalized_url}/api/tools/{route.service_name}"
        provider = route.provider.value
        operation = route.service_name

        logger.info("Calling remote tool %s/%s", provider, operation)
        try:
            response = await self._client.post(
                url,
                json={"arguments": args},
                headers=self._headers(provider_config),
                timeout=self._config.execute_timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(
                f"HTTP {e.response.status_code}: {e.response.text[:500]}",
                provider=provider,
                operation=operation,
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise RemoteServiceError(
                f"timed out after {self._config.execute_timeout_seconds}s",
                provider=provider,
                operation=operation,
            ) from e
        except httpx.RequestError as e:
            raise RemoteServiceError(
                str(e) or type(e).__name__, provider=provider, operation=operation
            ) from e
        except ValueError as e:
            raise RemoteServiceError(
                f"invalid JSON response: {e}",
                provider=provider,
                operation=operation,
                status_code=response.status_code,
            ) from e

        await self._track_cost(route.provider, operation, body)

        if isinstance(body, dict) and "result" in body:
            return body["result"]
        return body

    async def _track_cost(self, provider: Provider, operation: str, body: Any) -> None:
        cost = extract_reported_cost(body)
        if cost is None:
            return
        record_remote_cost(provider.value, cost)
        if self._cost_tracker is None:
            return
        try:
            await self._cost_tracker.record_remote_cost(provider.value, operation, cost)
        except CostTrackerError as e:
            logger.warning("Failed to record remote cost for %s/%s: %s", provider.value, operation, e)

    # =========================================================================
    # Catalog Fetch
    # =========================================================================

    async def fetch_catalog(self, provider: Provider) -> list[CapabilityDescriptor]:
        """
        Fetch a provider's capability list, names prefixed for the aggregate.

        An unconfigured provider contributes nothing. Any other failure is
        raised as RemoteServiceError for the caller to degrade.

        Args:
            provider: Remote provider

        Returns:
            Descriptors named e.g. ``openreyestr_search_entities``
        """
        if not self.is_configured(provider):
            logger.info("Skipping catalog fetch for unconfigured provider %s", provider.value)
            return []

        provider_config = self._resolve(provider)
        url = f"{provider_config.normalized_url}/api/tools"
        try:
            response = await self._client.get(
                url,
                headers=self._headers(provider_config),
                timeout=self._config.catalog_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(
                f"HTTP {e.response.status_code}",
                provider=provider.value,
                operation="list_tools",
                status_code=e.response.status_code,
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise RemoteServiceError(
                str(e) or type(e).__name__,
                provider=provider.value,
                operation="list_tools",
            ) from e

        raw_tools = data.get("tools") if isinstance(data, dict) else None
        if not isinstance(raw_tools, list):
            logger.warning("Catalog from %s has no tool list", provider.value)
            return []
        descriptors = []
        for tool in raw_tools:
            descriptor = catalog_descriptor(provider, tool)
            if descriptor is None:
                logger.warning("Skipping malformed catalog entry from %s: %r", provider.value, tool)
                continue
            descriptors.append(descriptor)
        return descriptors
