"""
Logging infrastructure for chat-sync.

Provides structured logging with correlation IDs, multiple output formats,
and per-component log channels.
"""
import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional
from contextvars import ContextVar

import structlog

from .config import LoggingConfig


# Context variable for correlation ID tracking
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


class CorrelationIDProcessor:
    """Add correlation ID to log records."""

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Add correlation ID to the event dictionary."""
        if cid := correlation_id.get():
            event_dict['correlation_id'] = cid
        return event_dict


def setup_logging(config: LoggingConfig) -> None:
    """Setup structured logging based on configuration."""
    structlog.reset_defaults()

    level = getattr(logging, config.level.value)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    if config.file:
        file_path = Path(config.file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.setLevel(level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        CorrelationIDProcessor(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a configured logger instance."""
    if name is None:
        name = "chat_sync"

    logger = structlog.get_logger(name)

    if component:
        logger = logger.bind(component=component)

    return logger


@contextmanager
def log_context(
    correlation_id_value: Optional[str] = None,
    **context_data: Any
):
    """
    Context manager for adding correlation ID and additional context to logs.

    Args:
        correlation_id_value: Correlation ID to use. If None, generates a new UUID.
        **context_data: Additional context data to include in logs.
    """
    if correlation_id_value is None:
        correlation_id_value = str(uuid.uuid4())[:8]

    token = correlation_id.set(correlation_id_value)
    logger = get_logger().bind(**context_data)

    try:
        yield logger
    finally:
        correlation_id.reset(token)


class ChatSyncLogger:
    """
    Specialized logger for chat-sync with convenience methods.
    """

    def __init__(self, name: str = "chat_sync", component: Optional[str] = None):
        self.name = name
        self.component = component
        self._logger = get_logger(name, component)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self._logger.error(message, **kwargs)

    def log_mutation(self, operation: str, **kwargs: Any) -> None:
        """Log an applied store mutation."""
        self._logger.debug("Store mutation applied",
                           operation=operation,
                           request_type="mutation",
                           **kwargs)

    def log_fanout(self, channel: str, key: Any, listeners: int) -> None:
        """Log a notification fan-out."""
        self._logger.debug("Listeners notified",
                           channel=channel,
                           key=str(key),
                           listeners=listeners,
                           request_type="fanout")

    def log_error_with_context(self, error: Exception, context: Dict[str, Any]) -> None:
        """Log error with additional context."""
        self._logger.error("Error occurred",
                           error=str(error),
                           error_type=type(error).__name__,
                           **context)


# Global logger instances
_main_logger: Optional[ChatSyncLogger] = None
_component_loggers: Dict[str, ChatSyncLogger] = {}


def get_main_logger() -> ChatSyncLogger:
    """Get the main application logger."""
    global _main_logger
    if _main_logger is None:
        _main_logger = ChatSyncLogger("chat_sync")
    return _main_logger


def get_component_logger(component: str) -> ChatSyncLogger:
    """Get a component-specific logger (store, uploads, notifications, ...)."""
    if component not in _component_loggers:
        _component_loggers[component] = ChatSyncLogger(f"chat_sync.{component}", component)
    return _component_loggers[component]


def configure_logging(config: LoggingConfig) -> None:
    """Configure logging system with the provided configuration."""
    setup_logging(config)

    logger = get_main_logger()
    logger.info("Logging system configured",
                level=config.level.value,
                format=config.format,
                file=config.file)


def log_startup(version: str, config_path: Optional[str] = None) -> None:
    """Log application startup."""
    with log_context() as ctx_logger:
        ctx_logger.info("chat-sync starting up",
                        version=version,
                        config_path=config_path,
                        request_type="startup")
