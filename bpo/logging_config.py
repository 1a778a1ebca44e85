"""
Centralized logging configuration for Budget Profit Optimizer.

Usage:
    from bpo.logging_config import setup_logging

    logger = setup_logging("bpo", log_level="INFO")
    logger.info("Normal operation")

Library modules only call ``logging.getLogger(__name__)``; the CLI calls
:func:`setup_logging` once on the ``bpo`` package logger so every child
logger inherits its handlers.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    module_name: str = "bpo",
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging with a dated file handler and optional console output.

    Args:
        module_name: Logger to configure (the package name configures all modules)
        log_level: DEBUG, INFO, WARNING or ERROR
        log_dir: Directory for log files; None disables the file handler
        console_output: Whether to also log to stderr

    Returns:
        Configured logger instance

    Log Files:
        Format: {log_dir}/{module}_{date}.log, e.g. logs/bpo_2026-10-19.log
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger(module_name)
    logger.setLevel(level)

    # Prevent duplicate handlers if setup_logging is called more than once
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y-%m-%d")
        simple_module = module_name.split(".")[-1]
        file_handler = logging.FileHandler(
            log_path / f"{simple_module}_{today}.log", encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
