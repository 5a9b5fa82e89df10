"""
Structured logging configuration for Hearsay.

This module sets up structured logging using the structlog library,
providing more searchable and analyzable logs. Every slash command runs
inside a RequestContext so its log lines share a request id.
"""

import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars, merge_contextvars, unbind_contextvars
from structlog.stdlib import LoggerFactory


def generate_request_id() -> str:
    """Generate a unique request ID.

    Returns:
        A unique request ID string.
    """
    return str(uuid.uuid4())


def get_request_id() -> Optional[str]:
    """Get the current request ID.

    Returns:
        The current request ID or None if not set.
    """
    return structlog.contextvars.get_contextvars().get("request_id")


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the current request ID.

    Args:
        request_id: The request ID to set. If None, a new ID will be generated.

    Returns:
        The request ID now in effect.
    """
    if request_id is None:
        request_id = generate_request_id()
    bind_contextvars(request_id=request_id)
    return request_id


def clear_request_id() -> None:
    """Clear the current request ID."""
    unbind_contextvars("request_id")


# Configure standard logging
def configure_stdlib_logging(
    log_level: int = logging.INFO, log_file: Optional[str] = None
) -> None:
    """Configure standard logging.

    Args:
        log_level: The logging level to use.
        log_file: Optional log file name, written under logs/.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        # Ensure logs directory exists
        os.makedirs("logs", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join("logs", f"{log_file}.log"),
            encoding="utf-8",
            maxBytes=32 * 1024 * 1024,  # 32 MB
            backupCount=10,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s", level=log_level, handlers=handlers, force=True
    )


# Configure structlog
def configure_structlog(log_format: str = "console") -> None:
    """Configure structlog with processors for formatting and output.

    Args:
        log_format: The format to use for log output. Either "json" or "console".
    """
    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        # Adds the request id bound by RequestContext
        merge_contextvars,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def init_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_format: str = "console",
) -> structlog.stdlib.BoundLogger:
    """Initialize logging with both stdlib and structlog.

    Args:
        log_level: The logging level to use.
        log_file: Optional log file name.
        log_format: The format to use for log output. Either "json" or "console".

    Returns:
        A structlog logger instance.
    """
    configure_stdlib_logging(log_level, log_file)
    configure_structlog(log_format)

    # discord.py is chatty at DEBUG
    logging.getLogger("discord").setLevel(max(log_level, logging.INFO))

    return structlog.get_logger("hearsay")


class RequestContext:
    """Context manager for tracking requests with a unique ID.

    This context manager sets a unique request ID for the duration of the context,
    which will be included in all log messages within the context.

    Example:
        ```python
        async with RequestContext(logger, "quote_search"):
            logger.info("searching", query="important")
        ```
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation_name: str,
        request_id: Optional[str] = None,
    ):
        self.logger = logger
        self.operation_name = operation_name
        self.request_id = request_id or generate_request_id()

    def __enter__(self) -> "RequestContext":
        set_request_id(self.request_id)
        self.logger.debug(f"{self.operation_name}_started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.logger.debug(f"{self.operation_name}_completed")
        else:
            self.logger.error(
                f"{self.operation_name}_failed",
                error=str(exc_val),
                error_type=exc_type.__name__,
            )
        clear_request_id()

    async def __aenter__(self) -> "RequestContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


class TimingContext:
    """Context manager for timing blocks of code.

    Example:
        ```python
        async with TimingContext(logger, "quote_search") as ctx:
            result = await pipeline.search(search_filter)
            ctx.add_info(total_results=result.pagination.total_results)
        ```
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation_name: str):
        self.logger = logger
        self.operation_name = operation_name
        self.start_time = None
        self.additional_info: dict[str, Any] = {}

    def add_info(self, **kwargs: Any) -> None:
        """Add additional information to be logged.

        Args:
            **kwargs: Key-value pairs to include in the log.
        """
        self.additional_info.update(kwargs)

    async def __aenter__(self) -> "TimingContext":
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"{self.operation_name}_completed",
                duration=duration,
                **self.additional_info,
            )
        else:
            self.logger.error(
                f"{self.operation_name}_failed",
                duration=duration,
                error=str(exc_val),
                error_type=exc_type.__name__,
                **self.additional_info,
            )
