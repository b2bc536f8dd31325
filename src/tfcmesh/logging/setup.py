# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/logging/setup.py

"""Logging configuration for tfcmesh."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}"


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    """Replace loguru's default sink with ours.

    Args:
        verbose: DEBUG level when set, INFO otherwise
        log_file: optional file sink, rotated at 50 MB
    """
    level = "DEBUG" if verbose else "INFO"
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level)
    if log_file:
        logger.add(
            str(log_file),
            format=LOG_FORMAT,
            level=level,
            rotation="50 MB",
            retention=5,
            enqueue=True,
        )
    logger.debug(f"Logging configured at {level}")
