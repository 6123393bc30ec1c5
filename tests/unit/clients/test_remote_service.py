"""
Tests for RemoteServiceClient.

Uses httpx.MockTransport so the real request building, error mapping and
response handling run end to end without a network.
"""

import json
from typing import Any, Callable
from unittest.mock import AsyncMock

import httpx
import pytest


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def remote_config(test_settings):
    from legal_gateway.core.config import RemoteServicesConfig

    return RemoteServicesConfig.from_settings(test_settings)


@pytest.fixture
def make_client(remote_config):
    """Build a RemoteServiceClient whose transport calls ``handler``."""
    from legal_gateway.clients.remote_service import RemoteServiceClient

    def factory(
        handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any
    ) -> RemoteServiceClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RemoteServiceClient(remote_config, http_client=http_client, **kwargs)

    return factory


def rada_route(operation: str = "get_deputy_info"):
    from legal_gateway.models.domain import Provider, Route

    return Route.remote(Provider.RADA, operation)


# =============================================================================
# execute
# =============================================================================


class TestExecute:
    @pytest.mark.asyncio
    async def test_posts_arguments_with_bearer_auth(self, make_client) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"result": {"content": [{"type": "text", "text": "ok"}]}})

        client = make_client(handler)
        result = await client.execute(rada_route(), {"name": "Іваненко"})

        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == "http://rada.test/api/tools/get_deputy_info"
        assert request.headers["Authorization"] == "Bearer rada-key"
        assert json.loads(request.content) == {"arguments": {"name": "Іваненко"}}
        assert result == {"content": [{"type": "text", "text": "ok"}]}

    @pytest.mark.asyncio
    async def test_body_without_result_returned_whole(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"content": []}))

        assert await client.execute(rada_route(), {}) == {"content": []}

    @pytest.mark.asyncio
    async def test_trailing_slash_in_base_url_normalized(self, make_client) -> None:
        from legal_gateway.models.domain import Provider, Route

        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"result": {}})

        client = make_client(handler)
        await client.execute(Route.remote(Provider.OPENREYESTR, "get_by_edrpou"), {})

        assert urls == ["http://openreyestr.test/api/tools/get_by_edrpou"]

    @pytest.mark.asyncio
    async def test_unconfigured_provider_raises_without_request(self) -> None:
        from legal_gateway.clients.remote_service import RemoteServiceClient
        from legal_gateway.core.config import RemoteServicesConfig
        from legal_gateway.core.exceptions import ServiceNotConfiguredError

        handler = AsyncMock()
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RemoteServiceClient(RemoteServicesConfig(), http_client=http_client)

        with pytest.raises(ServiceNotConfiguredError) as exc_info:
            await client.execute(rada_route(), {})

        assert exc_info.value.provider == "rada"
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_raises_remote_service_error(self, make_client) -> None:
        from legal_gateway.core.exceptions import RemoteServiceError

        client = make_client(lambda request: httpx.Response(500, text="internal"))

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.execute(rada_route(), {})

        error = exc_info.value
        assert error.status_code == 500
        assert error.provider == "rada"
        assert error.operation == "get_deputy_info"
        assert "internal" in error.message

    @pytest.mark.asyncio
    async def test_timeout_raises_remote_service_error(self, make_client) -> None:
        from legal_gateway.core.exceptions import RemoteServiceError

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = make_client(handler)

        with pytest.raises(RemoteServiceError, match="timed out"):
            await client.execute(rada_route(), {})

    @pytest.mark.asyncio
    async def test_network_error_raises_remote_service_error(self, make_client) -> None:
        from legal_gateway.core.exceptions import RemoteServiceError

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)

        with pytest.raises(RemoteServiceError, match="refused"):
            await client.execute(rada_route(), {})

    @pytest.mark.asyncio
    async def test_invalid_json_raises_remote_service_error(self, make_client) -> None:
        from legal_gateway.core.exceptions import RemoteServiceError

        client = make_client(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(RemoteServiceError, match="invalid JSON"):
            await client.execute(rada_route(), {})

    @pytest.mark.asyncio
    async def test_correlation_id_forwarded(self, make_client) -> None:
        from legal_gateway.observability.logging import correlation_id_context

        headers: list[httpx.Headers] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers)
            return httpx.Response(200, json={"result": {}})

        client = make_client(handler)
        with correlation_id_context("req-123"):
            await client.execute(rada_route(), {})

        assert headers[0]["X-Parent-Request-ID"] == "req-123"


class TestCostTracking:
    @pytest.mark.asyncio
    async def test_reported_cost_recorded(self, make_client) -> None:
        body = {
            "result": {"content": []},
            "cost_tracking": {"actual_cost": {"totals": {"cost_usd": 0.02}}},
        }
        tracker = AsyncMock()
        client = make_client(lambda request: httpx.Response(200, json=body), cost_tracker=tracker)

        await client.execute(rada_route("search_parliament_bills"), {})

        tracker.record_remote_cost.assert_awaited_once_with(
            "rada", "search_parliament_bills", 0.02
        )

    @pytest.mark.asyncio
    async def test_tracker_failure_does_not_fail_call(self, make_client) -> None:
        from legal_gateway.services.cost_tracker import CostTrackerError

        body = {
            "result": {"content": []},
            "cost_tracking": {"actual_cost": {"totals": {"cost_usd": 0.02}}},
        }
        tracker = AsyncMock()
        tracker.record_remote_cost.side_effect = CostTrackerError("redis down")
        client = make_client(lambda request: httpx.Response(200, json=body), cost_tracker=tracker)

        assert await client.execute(rada_route(), {}) == {"content": []}

    def test_extract_reported_cost(self) -> None:
        from legal_gateway.clients.remote_service import extract_reported_cost

        assert extract_reported_cost({"cost_tracking": {"actual_cost": {"totals": {"cost_usd": 1}}}}) == 1.0
        assert extract_reported_cost({"cost_tracking": {}}) is None
        assert extract_reported_cost([]) is None


# =============================================================================
# fetch_catalog
# =============================================================================


class TestFetchCatalog:
    @pytest.mark.asyncio
    async def test_names_prefixed_and_descriptions_labelled(self, make_client) -> None:
        from legal_gateway.models.domain import Provider

        body = {
            "tools": [
                {
                    "name": "search_entities",
                    "description": "Пошук",
                    "inputSchema": {"type": "object", "required": ["query"]},
                },
                {"description": "no name"},
            ]
        }
        client = make_client(lambda request: httpx.Response(200, json=body))

        descriptors = await client.fetch_catalog(Provider.OPENREYESTR)

        assert len(descriptors) == 1
        assert descriptors[0].name == "openreyestr_search_entities"
        assert descriptors[0].description == "[OpenReyestr] Пошук"
        assert descriptors[0].input_schema["required"] == ["query"]

    @pytest.mark.asyncio
    async def test_unconfigured_provider_contributes_nothing(self) -> None:
        from legal_gateway.clients.remote_service import RemoteServiceClient
        from legal_gateway.core.config import RemoteServicesConfig
        from legal_gateway.models.domain import Provider

        client = RemoteServiceClient(
            RemoteServicesConfig(),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(AsyncMock())),
        )

        assert await client.fetch_catalog(Provider.RADA) == []

    @pytest.mark.asyncio
    async def test_http_error_raises(self, make_client) -> None:
        from legal_gateway.core.exceptions import RemoteServiceError
        from legal_gateway.models.domain import Provider

        client = make_client(lambda request: httpx.Response(503))

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.fetch_catalog(Provider.RADA)

        assert exc_info.value.operation == "list_tools"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"tools": None}, {"tools": "x"}, ["search"], {}])
    async def test_missing_tool_list_contributes_nothing(self, make_client, body) -> None:
        from legal_gateway.models.domain import Provider

        client = make_client(lambda request: httpx.Response(200, json=body))

        assert await client.fetch_catalog(Provider.RADA) == []

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped_or_defaulted(self, make_client) -> None:
        from legal_gateway.models.domain import Provider

        body = {
            "tools": [
                {"name": "get_deputy_info", "inputSchema": "not-a-dict", "description": 7},
                {"name": ["list"]},
                "get_bill",
            ]
        }
        client = make_client(lambda request: httpx.Response(200, json=body))

        descriptors = await client.fetch_catalog(Provider.RADA)

        assert [d.name for d in descriptors] == ["rada_get_deputy_info"]
        assert descriptors[0].description == "[RADA] "
        assert descriptors[0].input_schema == {"type": "object", "properties": {}}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200, json={}))

        await client.close()

        assert not client._client.is_closed

    def test_is_configured(self, make_client) -> None:
        from legal_gateway.models.domain import Provider

        client = make_client(lambda request: httpx.Response(200))

        assert client.is_configured(Provider.RADA)
        assert client.is_configured(Provider.OPENREYESTR)
