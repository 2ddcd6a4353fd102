"""
Logging configuration for Cost Ledger.

Rich console output on stderr with an optional plain-text log file.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cost_ledger"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logger(
    level: str = "info",
    verbose: bool = False,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for the ``cost_ledger`` package.

    Args:
        level: Log level name (debug, info, warning, error)
        verbose: Force debug logging and show time/path columns
        log_file: Optional file to write logs to

    Returns:
        Configured package logger
    """
    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = _LEVELS.get(level.lower(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_time=verbose,
        show_path=verbose,
        rich_tracebacks=True,
    )
    if verbose:
        rich_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger
