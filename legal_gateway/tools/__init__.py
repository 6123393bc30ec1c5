"""
Tools Package - Tool Registry and Handlers

This package provides the registry that routes tool names to local
handlers or remote providers, and the ToolHandler interface local
families implement.
"""

from legal_gateway.tools.base import ToolHandler
from legal_gateway.tools.registry import (
    STATIC_REMOTE_ROUTES,
    CatalogState,
    RemoteCatalogCache,
    ToolRegistry,
    get_tool_registry,
    reset_tool_registry,
    set_tool_registry,
)

__all__ = [
    "ToolHandler",
    "STATIC_REMOTE_ROUTES",
    "CatalogState",
    "RemoteCatalogCache",
    "ToolRegistry",
    "get_tool_registry",
    "reset_tool_registry",
    "set_tool_registry",
]
