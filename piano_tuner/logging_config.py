"""Centralized logging configuration for the piano tuner.

This module provides a consistent way to configure logging across the application.
"""

import logging
import sys
from typing import Dict, Optional

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "piano_tuner": logging.INFO,
    "piano_tuner.engine": logging.INFO,
    # Tuning maths and workflow
    "piano_tuner.tuning": logging.INFO,
    "piano_tuner.tuning.calibrator": logging.INFO,
    "piano_tuner.tuning.store": logging.INFO,
    # Audio: per-window detection logging is very chatty
    "piano_tuner.audio": logging.INFO,
    "piano_tuner.audio.pitch": logging.WARNING,  # Set to DEBUG for per-window values
    "piano_tuner.core": logging.INFO,
    "piano_tuner.cli": logging.INFO,
    "piano_tuner.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "sounddevice": logging.ERROR,
    "soundfile": logging.ERROR,
    # Root logger
    "": logging.ERROR,
}

# Shared console handler
_console_handler: Optional[logging.Handler] = None

# Levels from the last setup_logging call
_active_levels: Dict[str, int] = MODULE_LOG_LEVELS


def level_for(name: str, levels: Optional[Dict[str, int]] = None) -> int:
    """Level for a logger name, from its closest listed parent."""
    levels = _active_levels if levels is None else levels
    parts = name.split(".")
    while parts:
        candidate = ".".join(parts)
        if candidate in levels:
            return levels[candidate]
        parts.pop()
    return levels.get("", logging.WARNING)


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'piano_tuner' log levels with this level (e.g., "DEBUG").
    """
    global _console_handler, _active_levels

    # Create a single, shared console handler if it doesn't exist
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        _console_handler.setFormatter(formatter)

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith("piano_tuner"):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels. Only top-level entries get the handler;
    # child loggers propagate up to them.
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name if module_name else "")
        logger.setLevel(module_level)

        if module_name in ("piano_tuner", "sounddevice", "soundfile", ""):
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.addHandler(_console_handler)
            logger.propagate = False

    # Loggers created before setup follow the new levels too
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("piano_tuner") and name not in log_levels:
            logging.getLogger(name).setLevel(level_for(name, log_levels))
    _active_levels = log_levels

    # Confirm setup complete
    logging.getLogger("piano_tuner").info("Logging configuration complete")
