"""
Core module for Legal Gateway.

This module contains configuration, exceptions, and shared utilities.
"""

from legal_gateway.core.config import (
    ProviderConfig,
    RemoteServicesConfig,
    Settings,
    get_settings,
)
from legal_gateway.core.exceptions import (
    DocumentStoreError,
    DuplicateToolError,
    ErrorCode,
    GatewayValidationError,
    IngestionAbortedError,
    LegalGatewayException,
    RemoteServiceError,
    SearchServiceError,
    ServiceNotConfiguredError,
    ToolExecutionError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "ProviderConfig",
    "RemoteServicesConfig",
    # Exceptions
    "ErrorCode",
    "LegalGatewayException",
    "ServiceNotConfiguredError",
    "RemoteServiceError",
    "DuplicateToolError",
    "ToolExecutionError",
    "GatewayValidationError",
    "SearchServiceError",
    "IngestionAbortedError",
    "DocumentStoreError",
]
