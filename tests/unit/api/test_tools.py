"""
Tests for the tools router.

Covers:
- GET /api/tools catalog and counts
- POST /api/tools/{name} execution and error mapping (404/422/502/503)
- POST /api/tools/{name}/stream server-sent events
- GET /api/usage
"""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from legal_gateway.api.routes.tools import get_registry
from legal_gateway.api.routes.tools import router as tools_router
from legal_gateway.core.exceptions import (
    GatewayValidationError,
    RemoteServiceError,
    SearchServiceError,
)
from legal_gateway.models.domain import CapabilityDescriptor, ToolFamily, ToolResult
from legal_gateway.tools.base import ToolHandler
from legal_gateway.tools.registry import ToolRegistry


class ScriptedTools(ToolHandler):
    """Court-decision family double with one tool per behaviour."""

    family = ToolFamily.COURT_DECISIONS

    def get_tool_definitions(self) -> list[CapabilityDescriptor]:
        return [
            CapabilityDescriptor(name="echo", description="Echo arguments"),
            CapabilityDescriptor(name="invalid"),
            CapabilityDescriptor(name="ingest"),
            CapabilityDescriptor(name="broken_ingest"),
        ]

    def supports_streaming(self, name: str) -> bool:
        return name in ("ingest", "broken_ingest")

    async def execute_tool(self, name: str, args: dict[str, Any]):
        if name == "echo":
            return ToolResult.from_payload(args)
        if name == "invalid":
            raise GatewayValidationError("query parameter is required", field="query")
        return None

    async def execute_tool_stream(self, name, args, on_event):
        await on_event({"type": "page", "page": 1, "new_docs": 2})
        await on_event({"type": "page", "page": 2, "new_docs": 1})
        if name == "broken_ingest":
            raise SearchServiceError("HTTP 500", endpoint="/v1/search", status_code=500)
        return ToolResult.from_payload({"unique_doc_ids_collected": 3})


@pytest.fixture
def remote_client():
    client = MagicMock()
    client.execute = AsyncMock(return_value={"content": [{"type": "text", "text": "ok"}]})

    async def fetch_catalog(provider):
        return [CapabilityDescriptor(name=f"{provider.value}_tool", input_schema={"type": "object"})]

    client.fetch_catalog = AsyncMock(side_effect=fetch_catalog)
    return client


def make_client(registry: ToolRegistry, cost_tracker=None) -> TestClient:
    app = FastAPI()
    app.include_router(tools_router)
    app.state.cost_tracker = cost_tracker
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app)


@pytest.fixture
def registry(remote_client) -> ToolRegistry:
    registry = ToolRegistry(remote_client)
    registry.register_handler(ScriptedTools())
    return registry


def parse_sse(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


# =============================================================================
# Catalog
# =============================================================================


class TestListTools:
    def test_catalog(self, registry) -> None:
        response = make_client(registry).get("/api/tools")

        assert response.status_code == 200
        data = response.json()
        names = [tool["name"] for tool in data["tools"]]
        assert names[:4] == ["echo", "invalid", "ingest", "broken_ingest"]
        assert "rada_tool" in names
        assert "inputSchema" in data["tools"][0]
        assert data["counts"]["backend"] == 4
        assert data["counts"]["total"] == 6


# =============================================================================
# Execute
# =============================================================================


class TestExecuteTool:
    def test_success(self, registry) -> None:
        response = make_client(registry).post(
            "/api/tools/echo", json={"arguments": {"query": "поставка"}}
        )

        assert response.status_code == 200
        text = response.json()["content"][0]["text"]
        assert json.loads(text) == {"query": "поставка"}

    def test_missing_body_uses_empty_arguments(self, registry) -> None:
        response = make_client(registry).post("/api/tools/echo", json={})

        assert response.status_code == 200
        assert response.json()["content"][0]["text"] == "{}"

    def test_unknown_tool_404(self, registry) -> None:
        response = make_client(registry).post("/api/tools/nope", json={"arguments": {}})

        assert response.status_code == 404

    def test_validation_error_422(self, registry) -> None:
        response = make_client(registry).post("/api/tools/invalid", json={"arguments": {}})

        assert response.status_code == 422
        assert response.json()["detail"] == {
            "error": "query parameter is required",
            "code": "VALIDATION_ERROR",
        }

    def test_remote_tool(self, registry, remote_client) -> None:
        response = make_client(registry).post(
            "/api/tools/openreyestr_get_by_edrpou", json={"arguments": {"edrpou": "12345678"}}
        )

        assert response.status_code == 200
        assert response.json()["content"][0]["text"] == "ok"

    def test_remote_failure_502(self, registry, remote_client) -> None:
        remote_client.execute.side_effect = RemoteServiceError(
            "timeout", provider="rada", operation="get_deputy_info"
        )

        response = make_client(registry).post("/api/tools/rada_get_deputy_info", json={})

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "REMOTE_SERVICE_ERROR"

    def test_not_configured_503(self) -> None:
        response = make_client(ToolRegistry()).post(
            "/api/tools/rada_get_deputy_info", json={"arguments": {}}
        )

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "SERVICE_NOT_CONFIGURED"


# =============================================================================
# Stream
# =============================================================================


class TestStream:
    def test_events_then_complete(self, registry) -> None:
        response = make_client(registry).post(
            "/api/tools/ingest/stream", json={"arguments": {"query": "x"}}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert [e["type"] for e in events] == ["page", "page", "complete"]
        result_text = events[-1]["result"]["content"][0]["text"]
        assert json.loads(result_text) == {"unique_doc_ids_collected": 3}

    def test_failure_ends_with_error_event(self, registry) -> None:
        response = make_client(registry).post("/api/tools/broken_ingest/stream", json={})

        events = parse_sse(response.text)
        assert [e["type"] for e in events] == ["page", "page", "error"]
        assert events[-1]["code"] == "SEARCH_SERVICE_ERROR"

    def test_non_streaming_tool_404(self, registry) -> None:
        response = make_client(registry).post("/api/tools/echo/stream", json={})

        assert response.status_code == 404


# =============================================================================
# Usage
# =============================================================================


class TestUsage:
    def test_without_tracker_503(self, registry) -> None:
        response = make_client(registry).get("/api/usage")

        assert response.status_code == 503

    def test_with_tracker(self, registry) -> None:
        from legal_gateway.services.cost_tracker import UsageSummary

        tracker = MagicMock()
        tracker.get_daily_usage = AsyncMock(
            return_value=UsageSummary(
                search_pages=3, search_cost=0.02142, remote_calls=1, remote_cost=0.05
            )
        )

        response = make_client(registry, cost_tracker=tracker).get("/api/usage")

        assert response.status_code == 200
        assert response.json() == {
            "search_pages": 3,
            "search_cost": 0.02142,
            "remote_calls": 1,
            "remote_cost": 0.05,
            "total_cost": 0.07142,
        }

    def test_tracker_failure_502(self, registry) -> None:
        from legal_gateway.services.cost_tracker import CostTrackerError

        tracker = MagicMock()
        tracker.get_daily_usage = AsyncMock(side_effect=CostTrackerError("redis down"))

        response = make_client(registry, cost_tracker=tracker).get("/api/usage")

        assert response.status_code == 502
