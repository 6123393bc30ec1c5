"""
Tool API Models

Request body for the tool execution endpoints. The wire shape matches the
remote tool services: ``{"arguments": {...}}``.
"""

from typing import Any

from pydantic import BaseModel, Field


class ToolExecuteRequest(BaseModel):
    """
    Tool execution request model.

    Attributes:
        arguments: Tool arguments, passed to the handler unchanged.
    """

    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Tool arguments"
    )
