# =============================================================================
# L5 Intercept - Logging Configuration
# =============================================================================
# Named loggers for the interceptor modules. Library code only asks for
# loggers; handlers are installed by the application (see simulation.py).
# =============================================================================

import logging

LOGGER_PREFIX = "L5_intercept"
LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'


def get_logger(module_name: str) -> logging.Logger:
    """Get logger for a specific interceptor module."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{module_name}")


def setup_logging(level: int = logging.INFO) -> None:
    """Install the console format used across the interceptor."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger(LOGGER_PREFIX).setLevel(level)
