"""
Logging Configuration.

loguru sinks for the workflow services. Run-scoped loggers carry the
workflow and claim ids as bound context, so every record of a run can be
filtered by workflow id in both the console and the JSON sink.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

# Defaults for records logged outside a run
DEFAULT_CONTEXT = {"name": "claimflow", "workflow_id": "-", "claim_id": "-"}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> [{extra[workflow_id]}] - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} "
    "[{extra[workflow_id]} {extra[claim_id]}] - {message}"
)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_logs: bool = False,
) -> None:
    """
    Configure workflow logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, rotated at 100 MB and kept 30 days
        json_logs: Serialize records as JSON, bound context included
    """
    logger.remove()
    logger.configure(extra=DEFAULT_CONTEXT)

    if json_logs:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="100 MB",
            retention="30 days",
            format=FILE_FORMAT,
            level=level,
            serialize=json_logs,
        )

    get_logger(__name__).info(f"Logging configured: level={level}, json_logs={json_logs}")


def get_logger(name: str = __name__, **context: Any):  # type: ignore[no-untyped-def]
    """
    Get a logger bound to a module name and optional run context.

    Example:
        >>> from claimflow.utils.logging import get_logger
        >>> log = get_logger(__name__, workflow_id="wf-1", claim_id="CLM-001")
        >>> log.info("Step completed")
    """
    return logger.bind(name=name, **context)
