# File to configure logging

import logging
import sys

import structlog


def configure_logging(json_logs: bool = True, level: str = "INFO", stream=None):
    """
    structlog over stdlib logging. Records go to stderr so stdout stays free
    for the CLI's JSON report.
    """
    pre_chain = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    if json_logs:
        tail = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # the console renderer formats tracebacks itself
        tail = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            *tail,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )
    return get_logger()


def get_logger(name: str = "tfr_warehouse"):
    return structlog.get_logger(name)
