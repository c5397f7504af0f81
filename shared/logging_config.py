"""Structured logging for the API and the worker.

Both processes log through structlog on top of stdlib logging, so records from
third-party libraries (uvicorn, SQLAlchemy, the E2B SDK) share the same output.
JSON is meant for log shipping, console for local development.

Usage:
    from shared.logging_config import setup_logging
    import structlog

    setup_logging(service_name="worker")
    logger = structlog.get_logger()
    logger.info("sandbox_created", sandbox_id=sandbox_id)
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

# Per-request chatter from HTTP and SDK clients stays at WARNING
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "e2b", "e2b_code_interpreter")


def _processors(log_format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        # request_id / project_id / correlation_id bound by handlers
        structlog.contextvars.merge_contextvars,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    return processors


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and the root logger.

    Args:
        service_name: Bound as ``service`` on every record. Falls back to
            SERVICE_NAME, then "unknown".
        log_format: "json" or "console". Falls back to LOG_FORMAT, then "console".
        log_level: Falls back to LOG_LEVEL, then "INFO".
    """
    service_name = service_name or os.getenv("SERVICE_NAME", "unknown")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger().info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, named after the module when given."""
    return structlog.get_logger(name)


def key_status(value: str | None) -> str:
    """Render a secret as AVAILABLE/MISSING for startup logs."""
    return "AVAILABLE" if value else "MISSING"
