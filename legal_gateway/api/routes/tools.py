"""
Tools Router

HTTP surface of the tool registry:
- GET  /api/tools                 aggregate capability catalog
- POST /api/tools/{name}          execute a tool
- POST /api/tools/{name}/stream   execute with progress as server-sent events
- GET  /api/usage                 today's external API spend

Error mapping: unknown tool 404, missing or malformed arguments 422,
provider not configured 503, remote or search failure 502.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from legal_gateway.core.exceptions import (
    ErrorCode,
    GatewayValidationError,
    LegalGatewayException,
    RemoteServiceError,
    SearchServiceError,
    ServiceNotConfiguredError,
)
from legal_gateway.models.tools import ToolExecuteRequest
from legal_gateway.services.cost_tracker import CostTracker, CostTrackerError
from legal_gateway.tools.registry import ToolRegistry, get_tool_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Tools"])


def get_registry() -> ToolRegistry:
    return get_tool_registry()


def get_cost_tracker(request: Request) -> Optional[CostTracker]:
    return getattr(request.app.state, "cost_tracker", None)


def error_code_value(error: LegalGatewayException) -> str:
    code = error.error_code
    return code.value if isinstance(code, ErrorCode) else str(code)


def to_http_exception(error: LegalGatewayException) -> HTTPException:
    """Map a gateway exception to its HTTP status."""
    if isinstance(error, GatewayValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, ServiceNotConfiguredError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(error, (RemoteServiceError, SearchServiceError)):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(
        status_code=code,
        detail={"error": error.message, "code": error_code_value(error)},
    )


def _sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"


# =============================================================================
# Catalog
# =============================================================================


@router.get("/tools")
async def list_tools(registry: ToolRegistry = Depends(get_registry)) -> dict[str, Any]:
    descriptors = await registry.get_all_capability_descriptors()
    return {
        "tools": [d.model_dump(by_alias=True) for d in descriptors],
        "counts": await registry.get_tool_counts(),
    }


# =============================================================================
# Execute
# =============================================================================


@router.post("/tools/{name}")
async def execute_tool(
    name: str,
    request: ToolExecuteRequest,
    registry: ToolRegistry = Depends(get_registry),
) -> dict[str, Any]:
    try:
        result = await registry.execute_tool(name, request.arguments)
    except LegalGatewayException as e:
        logger.warning("Tool %s failed: %s", name, e.message)
        raise to_http_exception(e) from e

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool '{name}' not found",
        )
    return result.to_dict()


@router.post("/tools/{name}/stream")
async def execute_tool_stream(
    name: str,
    request: ToolExecuteRequest,
    registry: ToolRegistry = Depends(get_registry),
) -> StreamingResponse:
    """
    Execute a streaming tool; one ``data:`` event per progress event, then
    a ``complete`` (or ``error``) event.
    """
    if not registry.supports_streaming(name):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool '{name}' not found or does not support streaming",
        )
    return StreamingResponse(
        _stream_events(registry, name, request.arguments),
        media_type="text/event-stream",
    )


async def _stream_events(
    registry: ToolRegistry, name: str, arguments: dict[str, Any]
) -> AsyncIterator[str]:
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def on_event(event: dict[str, Any]) -> None:
        await queue.put(event)

    task = asyncio.create_task(registry.execute_tool_stream(name, arguments, on_event))
    try:
        while not task.done():
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield _sse(getter.result())
            else:
                getter.cancel()
        while not queue.empty():
            yield _sse(queue.get_nowait())

        try:
            result = task.result()
        except LegalGatewayException as e:
            logger.warning("Streaming tool %s failed: %s", name, e.message)
            yield _sse({"type": "error", "error": e.message, "code": error_code_value(e)})
            return
        yield _sse({"type": "complete", "result": result.to_dict() if result else None})
    finally:
        # Client went away mid-stream.
        if not task.done():
            task.cancel()


# =============================================================================
# Usage
# =============================================================================


@router.get("/usage")
async def daily_usage(
    cost_tracker: Optional[CostTracker] = Depends(get_cost_tracker),
) -> dict[str, Any]:
    if cost_tracker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cost tracking requires Redis",
        )
    try:
        usage = await cost_tracker.get_daily_usage()
    except CostTrackerError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    return {**usage.model_dump(), "total_cost": usage.total_cost}
