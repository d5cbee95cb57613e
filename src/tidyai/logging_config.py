"""
Logging configuration for the tidyai command line.

Library modules only create module-level loggers; handlers are attached
here, once, by the CLI.

Usage:
    from tidyai.logging_config import configure_logging

    configure_logging(verbose=True)
    configure_logging(log_dir=Path("~/.local/share/tidyai/logs").expanduser())

Environment Variables:
    TIDYAI_LOG_LEVEL - Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    verbose: bool = False,
    log_level: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure logging for the ``tidyai`` package.

    Args:
        verbose: Shortcut for DEBUG level
        log_level: Explicit level (overrides TIDYAI_LOG_LEVEL)
        log_dir: Also write a timestamped log file into this directory

    Returns:
        The configured ``tidyai`` logger
    """
    logger = logging.getLogger("tidyai")

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    if verbose:
        log_level = "DEBUG"
    elif log_level is None:
        log_level = os.environ.get("TIDYAI_LOG_LEVEL", "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console goes to stderr so stdout stays clean for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"tidyai_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
