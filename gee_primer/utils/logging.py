"""
Logging Configuration Module

Console and file logging for the lessons and the command line tool.
Lesson narration is printed; logging records what was requested from
Earth Engine and what came back.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union


LOGGER_NAME = 'gee_primer'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty client libraries underneath earthengine-api
QUIET_LOGGERS = ('googleapiclient.discovery_cache', 'google.auth', 'urllib3')

_FALSE_STRINGS = ('0', 'false', 'no', 'off')


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_file: Optional[Union[str, Path]] = None,
    log_level: str = "INFO",
    console: bool = True
) -> logging.Logger:
    """
    Configure the ``gee_primer`` logger. Calling it again replaces the
    previous handlers.

    Parameters
    ----------
    log_file : Path, optional
        Path to log file (default: None, no file logging)
    log_level : str, optional
        Logging level name (default: "INFO")
    console : bool, optional
        Log to stdout as well (default: True)

    Returns
    -------
    logging.Logger
        The configured package logger
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    while logger.handlers:
        old = logger.handlers.pop()
        old.close()

    if console:
        logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level))

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(log_file, encoding='utf-8'), level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def setup_logging_from_config(config: dict, project_root: Optional[Path] = None) -> logging.Logger:
    """
    Configure logging from the ``logging`` section of the loaded config.
    Relative log files are placed under ``project_root``.
    """
    log_config = config.get("logging", {}) or {}

    log_file = log_config.get("file")
    if log_file and project_root is not None and not Path(log_file).is_absolute():
        log_file = Path(project_root) / log_file

    console = log_config.get("console", True)
    if isinstance(console, str):
        console = console.strip().lower() not in _FALSE_STRINGS

    return setup_logging(log_file=log_file, log_level=log_config.get("level", "INFO"), console=console)


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Logger for ``name`` (the package logger by default)."""
    return logging.getLogger(name)
