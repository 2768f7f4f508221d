import logging
import os
import sys

def setup_logging(name="forecast_index", level=None):
    logger = logging.getLogger(name)
    if level is None:
        level = os.getenv("FORECAST_INDEX_LOG_LEVEL", "INFO").upper()
    logger.setLevel(level)

    # Repeated imports (tests, scripts) must not stack handlers
    if not logger.handlers:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        # stdout is reserved for command output (JSON)
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    return logger

logger = setup_logging()
