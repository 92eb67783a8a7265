"""
Logger module for base_service.

Modules log through get_logger() rather than importing the logger object, so a logger
installed later with set_logger() is picked up everywhere.
"""

import logging

# Module-level logger
logger: logging.Logger = logging.getLogger('base_service')
logger.setLevel(logging.WARNING)  # Timing lines are DEBUG, keep them quiet unless asked for

def get_logger() -> logging.Logger:
    return logger

def set_logger(custom_logger: logging.Logger) -> None:
    """Route every base_service log line to custom_logger."""
    global logger
    logger = custom_logger

def set_log_level(level: int) -> None:
    """Set the logging level of the current logger.

    Args:
        level: logging.DEBUG to see the "Database Usage Logging" timing lines, logging.WARNING for partial batch writes only
    """
    logger.setLevel(level)
