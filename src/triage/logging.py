"""Structured logging setup for the triage action.

Every module logs through `structlog.get_logger()` with key/value context;
this module wires structlog onto the standard library logger once per
process. Output goes to stderr, which the Actions runner shows in the job
log, as console lines or, with log_json, as JSON lines.
"""

import logging
import sys

import structlog


def configure_logging(verbose: bool = False, json: bool = False) -> None:
    """Configure structlog and the root logger.

    Args:
        verbose: Log at DEBUG instead of INFO.
        json: Render JSON lines instead of console output.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # the console renderer formats tracebacks itself
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
