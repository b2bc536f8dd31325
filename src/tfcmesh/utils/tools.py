# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/utils/tools.py

"""Runner for external transfer tools (xrdcp, gfal-copy, cp, ...)."""

import subprocess
from typing import List, Optional

from loguru import logger

from tfcmesh.errors import ToolError


def run_tool(argv: List[str], timeout: Optional[float] = 3600) -> subprocess.CompletedProcess:
    """Run an external executable and raise ToolError on non-zero exit."""
    logger.debug(f"Running {' '.join(argv)}")
    try:
        result = subprocess.run(argv, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise ToolError(argv, 127, str(e)) from e
    except subprocess.TimeoutExpired as e:
        raise ToolError(argv, -1, f"timed out after {timeout}s") from e
    except OSError as e:
        # not executable, bad interpreter, ...
        raise ToolError(argv, 126, str(e)) from e
    if result.returncode != 0:
        raise ToolError(argv, result.returncode, result.stderr)
    return result
