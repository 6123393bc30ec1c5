"""
Built-in Tools Package

Local tool families served in-process: court decisions (search API and
decision pages) and the business registry (proxied to openreyestr).
"""

from legal_gateway.tools.builtin.business_registry import BusinessRegistryTools
from legal_gateway.tools.builtin.court_decisions import CourtDecisionTools
from legal_gateway.tools.base import ToolHandler
from legal_gateway.tools.registry import ToolRegistry


def register_builtin_tools(registry: ToolRegistry, handlers: list[ToolHandler]) -> None:
    """
    Register built-in tool handlers with the given registry.

    Args:
        registry: The ToolRegistry to register tools with.
        handlers: Handler instances, wired with their clients.
    """
    for handler in handlers:
        registry.register_handler(handler)


__all__ = [
    "BusinessRegistryTools",
    "CourtDecisionTools",
    "register_builtin_tools",
]
