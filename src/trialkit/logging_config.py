"""Structured logging configuration using structlog.

Provides JSON output for CI log collectors and pretty console output for
local runs. Output goes to the ``trialkit`` logger only, so pytest's own
terminal reporting and log capture are left alone.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, WrappedLogger

LOGGER_NAME = "trialkit"


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application context to all log events."""
    event_dict["app"] = "trialkit"
    return event_dict


def configure_logging(log_level: str = "ERROR", environment: str = "development") -> None:
    """Configure structlog for structured logging.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment name (development, production)
    
    In production mode:
        - JSON output for machine parsing
        - ISO timestamps
        - Exception info included
        
    In development mode:
        - Console output without colors (pytest owns the terminal)
    
    Safe to call more than once; each call replaces the previous handler.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.ERROR)
    
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]
    
    is_production = environment.lower() == "production"
    
    if is_production:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    
    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )
    
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(log_level_int)
    
    package_logger = logging.getLogger(LOGGER_NAME)
    # Clear existing handlers to avoid duplicates across pytester sessions
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level_int)
    package_logger.propagate = False
    
    logger = structlog.get_logger(__name__)
    logger.debug(
        "Logging configured",
        log_level=log_level,
        environment=environment,
        renderer="json" if is_production else "console",
    )
