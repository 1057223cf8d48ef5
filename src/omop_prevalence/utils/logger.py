"""
Logging Configuration

Sets up rotating file logging and console logging for prevalence runs.
Handler settings default to the logging section of the configuration
(LOG_LEVEL, LOG_DIR).
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from datetime import datetime
from typing import Optional, Union

from omop_prevalence.config import LoggingConfig, get_config


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Loggers configured by setup_logger, by name
_loggers: dict = {}


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logger(
    name: str = "omop_prevalence",
    log_dir: Optional[str] = None,
    level: Union[int, str, None] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    console_output: bool = True,
    file_output: bool = True,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure a logger for report runs.

    Any setting left as None comes from ``config``, or from the global
    configuration's logging section when no config is given. A logger is
    configured once; later calls with the same name return it unchanged.

    Args:
        name: Logger name (the package logger covers every module)
        log_dir: Directory for the rotating log file
        level: Logging level (constant or name such as "DEBUG")
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep
        console_output: Whether to also log to stderr
        file_output: Whether to write a rotating log file
        config: Logging configuration

    Returns:
        Configured logger
    """
    if name in _loggers:
        return _loggers[name]

    settings = config or get_config(validate=False).logging
    resolved_level = _resolve_level(settings.level if level is None else level)

    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = []
    log_file = None
    if file_output:
        directory = log_dir or settings.log_dir
        os.makedirs(directory, exist_ok=True)
        log_file = os.path.join(directory, f"{name}.log")
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=settings.max_file_size if max_bytes is None else max_bytes,
            backupCount=settings.backup_count if backup_count is None else backup_count,
        ))
    if console_output:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(resolved_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    _loggers[name] = logger
    logger.debug(f"Logger '{name}' at {logging.getLevelName(resolved_level)}, "
                 f"log file: {log_file or 'disabled'}")
    return logger


def get_logger(name: str = "omop_prevalence") -> logging.Logger:
    """Return a configured logger, setting it up from configuration on first use."""
    return _loggers.get(name) or setup_logger(name)


def log_report_start(
    run_id: str,
    registry_name: str,
    total_categories: int,
    window_label: str,
    logger: Optional[logging.Logger] = None
):
    """Log report run start."""
    log = logger or logging.getLogger("omop_prevalence")
    log.info("=" * 60)
    log.info("PREVALENCE REPORT STARTED")
    log.info(f"  Run ID: {run_id}")
    log.info(f"  Registry: {registry_name}")
    log.info(f"  Categories: {total_categories}")
    log.info(f"  Date Range: {window_label}")
    log.info(f"  Started At: {datetime.now().isoformat()}")
    log.info("=" * 60)


def log_report_end(run_id: str, results: dict, logger: Optional[logging.Logger] = None):
    """Log report run end."""
    log = logger or logging.getLogger("omop_prevalence")
    log.info("=" * 60)
    log.info("PREVALENCE REPORT COMPLETED")
    log.info(f"  Run ID: {run_id}")
    log.info(f"  Requested: {results.get('requested', 0)}")
    log.info(f"  Reported: {results.get('reported', 0)}")
    log.info(f"  Failed: {results.get('failed', 0)}")
    log.info(f"  Total Patients: {results.get('total_patients', 0)}")
    log.info(f"  Completed At: {datetime.now().isoformat()}")
    log.info("=" * 60)


def log_category_result(
    category_id: str,
    status: str,
    count: int = 0,
    rate: float = 0.0,
    error: Optional[str] = None,
    logger: Optional[logging.Logger] = None
):
    """Log individual category result."""
    log = logger or logging.getLogger("omop_prevalence")
    if status == "success":
        log.info(f"[OK] {category_id}: {count} ({rate:.2f}%)")
    elif status == "empty":
        log.info(f"[EMPTY] {category_id}: no matching concepts")
    else:
        log.error(f"[FAIL] {category_id}: {status} - {error or 'Unknown error'}")
