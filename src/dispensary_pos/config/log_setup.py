"""
Structured logging setup.

Modules log through structlog.get_logger(); entry points (the API app and
scripts) call configure_logging() once at start-up.
"""
import logging

import structlog


def configure_logging(level: int = logging.INFO):
    """JSON log lines on stdout with ISO timestamps."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
