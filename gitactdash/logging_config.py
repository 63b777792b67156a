"""Logging for the dashboard: structlog events, rich tracebacks, scoped context."""

import logging
import socket
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from rich.traceback import install as install_rich_traceback

install_rich_traceback(show_locals=False, width=120)


def add_environment(environment: str) -> structlog.types.Processor:
    """Build a processor that stamps every event with environment and machine name."""
    machine = socket.gethostname()

    def processor(
        logger: structlog.types.WrappedLogger, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("environment", environment)
        event_dict.setdefault("machine", machine)
        return event_dict

    return processor


def _renderers(json_logs: bool) -> list[structlog.types.Processor]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)]


def setup_logging(
    *, json_logs: bool = False, log_level: str = "INFO", environment: str = "development"
) -> None:
    """Configure structlog for the process.

    Args:
        json_logs: One JSON object per line instead of colored console output.
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        environment: Deployment name stamped on every event.
    """
    level = getattr(logging, log_level.upper())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_environment(environment),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderers(json_logs),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def get_server_logger() -> structlog.stdlib.BoundLogger:
    """Logger for HTTP endpoints and the OAuth flow."""
    return get_logger("gitactdash.server")


def get_github_logger() -> structlog.stdlib.BoundLogger:
    """Logger for GitHub REST calls and the service above them."""
    return get_logger("gitactdash.github")


def get_storage_logger() -> structlog.stdlib.BoundLogger:
    return get_logger("gitactdash.storage")


def get_ws_logger() -> structlog.stdlib.BoundLogger:
    """Logger for the preferences WebSocket."""
    return get_logger("gitactdash.websocket")


@contextmanager
def service_operation(service: str, operation: str) -> Iterator[None]:
    """Tag every log event inside the block with the service and operation."""
    with structlog.contextvars.bound_contextvars(service=service, operation=operation):
        yield


@contextmanager
def github_operation(
    operation: str, repository: str | None = None, organization: str | None = None
) -> Iterator[None]:
    """Tag log events with a GitHub operation and, when given, its target."""
    tags = {"operation": operation}
    if repository:
        tags["repository"] = repository
    if organization:
        tags["organization"] = organization
    with structlog.contextvars.bound_contextvars(**tags):
        yield


@contextmanager
def component_operation(component: str, operation: str) -> Iterator[None]:
    with structlog.contextvars.bound_contextvars(component=component, operation=operation):
        yield


@contextmanager
def time_operation(log: structlog.stdlib.BoundLogger, operation: str) -> Iterator[None]:
    """Log how long the block took, including when it raises."""
    log.debug("operation_started", timed_operation=operation)
    started = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        log.info("operation_completed", timed_operation=operation, duration_ms=round(duration_ms, 2))
