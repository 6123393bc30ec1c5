"""
Domain Models - Routing, Capabilities and Tool Results

This module contains the domain models used by the tool registry and the
remote service client: providers, routes, capability descriptors and the
tool result envelope returned to callers.

Pattern: Domain models as value objects (frozen Pydantic models)
Pattern: Tagged variants for dispatch (ToolFamily) instead of duck typing
"""

import json
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


# =============================================================================
# Providers and Tool Families
# =============================================================================


class Provider(str, Enum):
    """Source of tool capabilities."""

    LOCAL = "local"
    RADA = "rada"
    OPENREYESTR = "openreyestr"


# Name prefix and description label used in the aggregate catalog.
PROVIDER_PREFIXES: dict[Provider, str] = {
    Provider.RADA: "rada_",
    Provider.OPENREYESTR: "openreyestr_",
}

PROVIDER_LABELS: dict[Provider, str] = {
    Provider.RADA: "[RADA] ",
    Provider.OPENREYESTR: "[OpenReyestr] ",
}


class ToolFamily(str, Enum):
    """
    Closed set of local capability families.

    Each registered handler declares exactly one family; the registry
    resolves name -> family -> handler.
    """

    COURT_DECISIONS = "court_decisions"
    BUSINESS_REGISTRY = "business_registry"


# =============================================================================
# Route
# =============================================================================


class Route(BaseModel):
    """
    Static mapping from an operation name to its provider.

    Exactly one route exists per tool name. Local routes are derived when
    a handler registers; remote routes are declared at startup.

    Attributes:
        tool_name: Name in the aggregate namespace.
        service_name: Operation name at the provider.
        provider: Which provider serves the operation.
        is_local: True when executed in-process.
    """

    tool_name: str
    service_name: str
    provider: Provider
    is_local: bool

    model_config = {"frozen": True}

    @classmethod
    def local(cls, tool_name: str) -> "Route":
        return cls(
            tool_name=tool_name,
            service_name=tool_name,
            provider=Provider.LOCAL,
            is_local=True,
        )

    @classmethod
    def remote(cls, provider: Provider, service_name: str) -> "Route":
        return cls(
            tool_name=f"{PROVIDER_PREFIXES[provider]}{service_name}",
            service_name=service_name,
            provider=provider,
            is_local=False,
        )


# =============================================================================
# CapabilityDescriptor
# =============================================================================


class CapabilityDescriptor(BaseModel):
    """
    Advertised name, description and input schema of one operation.

    Accepts both ``input_schema`` and the wire name ``inputSchema``;
    serializes as ``inputSchema`` when dumped by alias.

    Example:
        >>> CapabilityDescriptor(
        ...     name="get_case_documents_chain",
        ...     description="All documents of one case",
        ...     input_schema={"type": "object", "properties": {}},
        ... )
    """

    name: str = Field(..., description="Unique tool identifier")
    description: str = Field(default="", description="Human-readable description")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        validation_alias=AliasChoices("input_schema", "inputSchema"),
        serialization_alias="inputSchema",
    )

    model_config = {"frozen": True, "populate_by_name": True}


# =============================================================================
# ToolResult
# =============================================================================


class TextContent(BaseModel):
    """One content block of a tool result."""

    type: str = "text"
    text: str = ""


class ToolResult(BaseModel):
    """
    Tool invocation result envelope: ``{content: [{type, text}], ...}``.

    Extra top-level keys from remote providers (e.g. cost tracking) are
    preserved.
    """

    content: list[TextContent] = Field(default_factory=list)
    is_error: Optional[bool] = Field(default=None, alias="isError")

    model_config = {"extra": "allow", "populate_by_name": True}

    @classmethod
    def from_payload(cls, payload: Any) -> "ToolResult":
        """Wrap a JSON-serializable payload as a single text block."""
        if isinstance(payload, str):
            text = payload
        else:
            text = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        return cls(content=[TextContent(text=text)])

    @classmethod
    def from_remote(cls, body: Any) -> "ToolResult":
        """Use a remote body as-is when it already has content blocks."""
        if isinstance(body, dict) and isinstance(body.get("content"), list):
            return cls.model_validate(body)
        return cls.from_payload(body)

    def first_text(self) -> str:
        return self.content[0].text if self.content else ""

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
