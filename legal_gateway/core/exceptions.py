"""
Custom exceptions for Legal Gateway.

This module provides a hierarchy of custom exceptions for the gateway.
All exceptions inherit from LegalGatewayException and include error codes
for consistent error handling and API responses.

Taxonomy:
- Configuration errors (ServiceNotConfiguredError) are fatal to one call.
- Remote transport errors (RemoteServiceError, SearchServiceError) carry
  provider/operation context and are never retried.
- "No such tool" is not an exception; the registry returns None.
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Legal Gateway exceptions.

    These codes provide a consistent way to identify error types
    across the API and in logging.
    """

    GATEWAY_ERROR = "GATEWAY_ERROR"
    SERVICE_NOT_CONFIGURED = "SERVICE_NOT_CONFIGURED"
    REMOTE_SERVICE_ERROR = "REMOTE_SERVICE_ERROR"
    DUPLICATE_TOOL = "DUPLICATE_TOOL"
    TOOL_EXECUTION_ERROR = "TOOL_EXECUTION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SEARCH_SERVICE_ERROR = "SEARCH_SERVICE_ERROR"
    INGESTION_ABORTED = "INGESTION_ABORTED"
    DOCUMENT_STORE_ERROR = "DOCUMENT_STORE_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class LegalGatewayException(Exception):
    """
    Base exception for all Legal Gateway errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GATEWAY_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# Remote Provider Errors
# =============================================================================


class ServiceNotConfiguredError(LegalGatewayException):
    """
    Raised when a remote provider has no base URL or API key.

    Kept distinct from RemoteServiceError so operators can tell
    "forgot to configure" apart from "service is down".

    Attributes:
        provider: Provider identifier (e.g., "rada", "openreyestr").
    """

    def __init__(
        self,
        provider: str,
        message: Optional[str] = None,
        error_code: str = ErrorCode.SERVICE_NOT_CONFIGURED,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message
            or f"Service {provider} is not configured (missing URL or API key)",
            error_code,
            **kwargs,
        )
        self.provider = provider


class RemoteServiceError(LegalGatewayException):
    """
    Exception for failed calls to a remote tool provider.

    Raised on timeouts, non-2xx responses and network failures.

    Attributes:
        provider: Provider identifier.
        operation: Remote operation name that was called.
        status_code: HTTP status code from the provider (if applicable).
    """

    def __init__(
        self,
        message: str,
        provider: str,
        operation: str,
        status_code: int | None = None,
        error_code: str = ErrorCode.REMOTE_SERVICE_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the remote service error.

        Args:
            message: Underlying failure message.
            provider: Provider identifier.
            operation: Remote operation name.
            status_code: HTTP status code (optional).
            error_code: Machine-readable error code.
            **kwargs: Additional attributes.
        """
        super().__init__(
            f"Remote service call failed ({provider}/{operation}): {message}",
            error_code,
            **kwargs,
        )
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        self.underlying_message = message


# =============================================================================
# Registry and Tool Errors
# =============================================================================


class DuplicateToolError(LegalGatewayException):
    """
    Raised at registration when a tool name is already claimed.

    Attributes:
        tool_name: The contested tool name.
    """

    def __init__(
        self,
        tool_name: str,
        message: Optional[str] = None,
        error_code: str = ErrorCode.DUPLICATE_TOOL,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message or f"Tool '{tool_name}' is already registered",
            error_code,
            **kwargs,
        )
        self.tool_name = tool_name


class ToolExecutionError(LegalGatewayException):
    """
    Exception for local tool execution failures.

    Attributes:
        tool_name: Name of the tool that failed.
    """

    def __init__(
        self,
        message: str,
        tool_name: str,
        error_code: str = ErrorCode.TOOL_EXECUTION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.tool_name = tool_name


class GatewayValidationError(LegalGatewayException):
    """
    Exception for missing or malformed tool arguments.

    Attributes:
        field: Name of the argument that failed validation.
        value: The invalid value (if applicable).
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        error_code: str = ErrorCode.VALIDATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field
        self.value = value


# =============================================================================
# Court Search and Ingestion Errors
# =============================================================================


class SearchServiceError(LegalGatewayException):
    """
    Exception for court search API failures.

    Attributes:
        endpoint: API path that was called.
        status_code: HTTP status code (if applicable).
    """

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: int | None = None,
        error_code: str = ErrorCode.SEARCH_SERVICE_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.endpoint = endpoint
        self.status_code = status_code


class IngestionAbortedError(LegalGatewayException):
    """
    Raised when a page fetch fails mid-crawl.

    Pages persisted before the failure stay persisted; the partial
    summary is attached so callers can report progress.

    Attributes:
        summary: Partial run summary at the time of failure.
        cause: The exception that aborted the run.
    """

    def __init__(
        self,
        summary: dict[str, Any],
        cause: Exception,
        error_code: str = ErrorCode.INGESTION_ABORTED,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"Ingestion aborted after {summary.get('pages_fetched', 0)} page(s): {cause}",
            error_code,
            **kwargs,
        )
        self.summary = summary
        self.cause = cause


class DocumentStoreError(LegalGatewayException):
    """Exception for storage collaborator failures."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.DOCUMENT_STORE_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
