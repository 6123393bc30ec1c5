"""
Tool Handler Interface

Every local capability family implements ToolHandler. The registry maps
each declared tool name to the handler's ToolFamily and dispatches
through this interface only.

Pattern: Explicit interface (ABC) with tagged family dispatch
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from legal_gateway.core.exceptions import GatewayValidationError
from legal_gateway.models.domain import CapabilityDescriptor, ToolFamily, ToolResult

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


class ToolHandler(ABC):
    """
    Base class for a family of local tools.

    Subclasses set ``family`` and implement ``get_tool_definitions`` and
    ``execute_tool``. Streaming is opt-in per tool name.
    """

    family: ToolFamily

    @abstractmethod
    def get_tool_definitions(self) -> list[CapabilityDescriptor]:
        """Descriptors for every tool this handler serves."""

    @abstractmethod
    async def execute_tool(self, name: str, args: dict[str, Any]) -> Optional[ToolResult]:
        """
        Execute one tool.

        Returns:
            The result, or None when ``name`` is not served by this handler
        """

    def supports_streaming(self, name: str) -> bool:
        return False

    async def execute_tool_stream(
        self, name: str, args: dict[str, Any], on_event: EventCallback
    ) -> Optional[ToolResult]:
        """Execute with progress events; non-streaming tools ignore ``on_event``."""
        return await self.execute_tool(name, args)

    def tool_names(self) -> list[str]:
        return [definition.name for definition in self.get_tool_definitions()]

    @staticmethod
    def wrap_response(payload: Any) -> ToolResult:
        return ToolResult.from_payload(payload)


# =============================================================================
# Argument Helpers
# =============================================================================


def require_str(args: dict[str, Any], name: str) -> str:
    """
    Non-empty, trimmed string argument.

    Raises:
        GatewayValidationError: If missing or blank
    """
    value = args.get(name)
    if value is None or not str(value).strip():
        raise GatewayValidationError(f"{name} parameter is required", field=name, value=value)
    return str(value).strip()


def optional_str(args: dict[str, Any], name: str) -> Optional[str]:
    value = args.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def int_arg(
    args: dict[str, Any],
    name: str,
    default: int,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    """
    Integer argument with default and optional clamp.

    Missing, null, zero or empty values take the default.

    Raises:
        GatewayValidationError: If the value is not a number
    """
    raw = args.get(name)
    if raw is None or raw == "" or raw == 0:
        value = default
    else:
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise GatewayValidationError(
                f"{name} must be an integer", field=name, value=raw
            ) from e
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def bool_arg(args: dict[str, Any], name: str, default: bool) -> bool:
    """Boolean argument; missing or null takes the default."""
    value = args.get(name)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
