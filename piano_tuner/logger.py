"""Module logger lookup for the piano tuner."""
import logging
from typing import Dict

from .logging_config import level_for

# Module-level cache for loggers
_logger_cache: Dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module, leveled from ``MODULE_LOG_LEVELS``.

    Modules without their own entry take the level of the closest listed
    parent package, so ``piano_tuner.tuning.order`` follows
    ``piano_tuner.tuning``. Handlers are attached by ``setup_logging``; until
    it runs, records propagate to whatever the host application set up.

    Args:
        name: The full module name (e.g., 'piano_tuner.audio.pitch')

    Returns:
        A logger instance
    """
    if name not in _logger_cache:
        logger = logging.getLogger(name)
        logger.setLevel(level_for(name))
        _logger_cache[name] = logger
    return _logger_cache[name]
