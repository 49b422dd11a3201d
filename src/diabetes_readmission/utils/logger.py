"""
Logging utilities for the readmission report.

Provides functions to configure and retrieve logger instances based on settings
defined in the project's configuration file (`config.yaml`). Handles log levels,
file output, and console output.
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

# Import config functions inside methods to avoid circular imports during startup

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _load_logging_section() -> Dict[str, Any]:
    """Return the 'logging' section of the default config, or {} if it cannot be loaded."""
    try:
        from .config import load_config

        return load_config().get("logging", {}) or {}
    except (FileNotFoundError, ValueError) as e:
        print(f"WARNING: Could not load logging config ({e}). Using defaults.")
        return {}


def get_log_level_from_config() -> int:
    """
    Get the logging level (e.g., logging.INFO, logging.DEBUG) from the configuration file.

    Reads the 'logging.level' setting from the config. Defaults to logging.INFO
    if the setting is missing, invalid, or if the config file cannot be loaded.

    Returns:
        int: The logging level constant.
    """
    log_level_str = str(_load_logging_section().get("level", "INFO")).upper()
    return LOG_LEVELS.get(log_level_str, logging.INFO)


def setup_logger(
    name: str = "diabetes_readmission",
    log_level: Optional[int] = None,
    log_file: Optional[str] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Args:
        name (str, optional): Name of the logger. Defaults to "diabetes_readmission".
        log_level (Optional[int], optional): Logging level. If None, determined by
                                             `get_log_level_from_config()`. Defaults to None.
        log_file (Optional[str], optional): Explicit path to the log file. If set to an empty
                                            string "", file logging is disabled. If set to None,
                                            a default timestamped log file is created in 'logs/'.
                                            Defaults to None.
        console_output (bool, optional): Whether to add a handler for console output (stdout).
                                         Defaults to True.

    Returns:
        logging.Logger: The configured logger instance.
    """
    if log_level is None:
        log_level = get_log_level_from_config()

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Prevent duplicate handlers if logger already exists and is configured
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # None means use default path, "" means disable, specific path means use that path.
    if log_file != "":
        actual_log_file_path = log_file
        if actual_log_file_path is None:
            from .config import get_project_root

            logs_dir = get_project_root() / "logs"
            logs_dir.mkdir(exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            actual_log_file_path = str(logs_dir / f"{name}_{timestamp}.log")

        file_handler = logging.FileHandler(actual_log_file_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # Prevent propagation to root logger if handlers are added
    logger.propagate = False

    return logger


def get_logger(name: str = "diabetes_readmission") -> logging.Logger:
    """
    Get a logger instance by name.

    If the logger already has handlers it is returned directly. Otherwise it is set up
    from the project configuration (log level, file output, console output). When the
    configuration cannot be loaded the logger writes to the console only.

    Args:
        name (str, optional): Name of the logger. Defaults to "diabetes_readmission".

    Returns:
        logging.Logger: The logger instance, potentially newly configured.
    """
    logger_instance = logging.getLogger(name)

    if not logger_instance.handlers:
        log_config = _load_logging_section()
        log_level_str = str(log_config.get("level", "INFO")).upper()
        logger_instance = setup_logger(
            name,
            log_level=LOG_LEVELS.get(log_level_str, logging.INFO),
            console_output=log_config.get("console_output", True),
            # Pass "" to disable file logging, None for the default timestamped file
            log_file=None if log_config.get("file_output", False) else "",
        )

    return logger_instance


def is_debug_enabled(logger: logging.Logger) -> bool:
    """
    Check if DEBUG logging is enabled for the given logger.

    Useful for conditionally executing expensive debug logging.

    Args:
        logger (logging.Logger): Logger to check.

    Returns:
        bool: True if the logger emits DEBUG records, False otherwise.
    """
    return logger.isEnabledFor(logging.DEBUG)
