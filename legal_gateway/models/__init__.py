"""Models Package - routing, capability and court document models."""

from legal_gateway.models.documents import (
    CaseDocument,
    DocumentSection,
    DocumentType,
    IngestionRun,
    Instance,
    SectionType,
)
from legal_gateway.models.domain import (
    CapabilityDescriptor,
    Provider,
    Route,
    TextContent,
    ToolFamily,
    ToolResult,
)
from legal_gateway.models.tools import ToolExecuteRequest

__all__ = [
    # Routing
    "Provider",
    "ToolFamily",
    "Route",
    "CapabilityDescriptor",
    "TextContent",
    "ToolResult",
    "ToolExecuteRequest",
    # Documents
    "CaseDocument",
    "DocumentSection",
    "DocumentType",
    "IngestionRun",
    "Instance",
    "SectionType",
]
