"""Logging and reproducibility setup for processes hosting the engines."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
from loguru import logger


def set_random_seeds(seed: int) -> None:
    """Set the global numpy random seed for reproducibility.

    Args:
        seed: Random seed value.
    """
    np.random.seed(seed)


def setup_logging(
    output_dir: Optional[Path] = None,
    log_subdir: str = "logs",
    log_prefix: str = "fedshield",
    level: str = "INFO",
) -> Optional[Path]:
    """Route loguru output to stderr and, optionally, a timestamped file.

    Args:
        output_dir: Base output directory. No file sink when None.
        log_subdir: Subdirectory for log files (default: "logs").
        log_prefix: Prefix for log filename (default: "fedshield").
        level: Minimum level to emit (default: "INFO").

    Returns:
        Path of the log file, or None when logging only to stderr.
    """
    logger.remove()
    logger.add(sys.stderr, level=level)

    if output_dir is None:
        return None

    log_dir = Path(output_dir) / log_subdir
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"{log_prefix}_{timestamp}.log"
    logger.add(log_file, level=level, rotation="10 MB")

    return log_file
