"""
Structured Logging Module

JSON logs via structlog. Every event carries a timestamp and level; the
request correlation id and the tool being executed are added from context
variables, so handler and pipeline logs can be traced back to one call.
The correlation id is also forwarded to remote tool services as the
parent request id.

Credentials (search tokens, provider API keys) never reach the output:
matching event keys are redacted before rendering.

Pattern: Structured logging for observability
Pattern: Singleton configuration (configure once at startup)
"""

import contextvars
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Generator, Optional, TextIO

import structlog
from structlog.types import EventDict, Processor

_configured: bool = False

REDACTED = "[REDACTED]"
SENSITIVE_KEY_PARTS = ("token", "api_key", "apikey", "authorization", "password", "secret")


# =============================================================================
# Context Variables
# =============================================================================

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_tool_name_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "tool_name", default=None
)


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Correlation id of the request being served, or None outside a request."""
    return _correlation_id_var.get()


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


@contextmanager
def correlation_id_context(correlation_id: str) -> Generator[None, None, None]:
    """
    Bind a correlation id for the duration of a block.

    Example:
        >>> with correlation_id_context("req-12345"):
        ...     logger.info("ingestion started")
    """
    token = _correlation_id_var.set(correlation_id)
    try:
        yield
    finally:
        _correlation_id_var.reset(token)


@contextmanager
def tool_context(tool_name: str) -> Generator[None, None, None]:
    """Tag every log event emitted inside the block with ``tool``."""
    token = _tool_name_var.set(tool_name)
    try:
        yield
    finally:
        _tool_name_var.reset(token)


def get_tool_name() -> Optional[str]:
    return _tool_name_var.get()


# =============================================================================
# Processors
# =============================================================================


def add_context_ids(logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    """Add correlation id and tool name when bound."""
    correlation_id = _correlation_id_var.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    tool_name = _tool_name_var.get()
    if tool_name is not None:
        event_dict.setdefault("tool", tool_name)
    return event_dict


def add_timestamp(logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def rename_level(logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    if "log_level" in event_dict:
        event_dict["level"] = event_dict.pop("log_level")
    return event_dict


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact_secrets(logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    """Replace values of credential-like keys, one level deep into dicts."""
    for key, value in list(event_dict.items()):
        if is_sensitive_key(key):
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if isinstance(k, str) and is_sensitive_key(k) else v
                for k, v in value.items()
            }
    return event_dict


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Called once at startup; later calls are no-ops unless ``force``.
    Library modules log through ``logging.getLogger(__name__)`` and end
    up on the same stream at the same level.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        stream: Output stream (default: sys.stdout)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    numeric_level = _level_to_int(level)
    output = stream or sys.stdout
    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        add_timestamp,
        add_context_ids,
        rename_level,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        level=numeric_level,
        stream=output,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        force=force,
    )

    _configured = True


def reset_logging() -> None:
    """Forget the configured state. Tests only."""
    global _configured
    _configured = False


def get_logger(
    name: str,
    stream: Optional[TextIO] = None,
    level: str = "INFO",
) -> structlog.BoundLogger:
    """
    Structured logger bound to ``name``.

    Configures logging with ``stream``/``level`` if nothing has yet.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("page fetched", page=3, unique_doc_ids_collected=1200)
    """
    configure_logging(level=level, stream=stream)
    return structlog.get_logger().bind(logger=name)


_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level_to_int(level: str) -> int:
    name = level.upper()
    return logging.getLevelName(name) if name in _LEVELS else logging.INFO
