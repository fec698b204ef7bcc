"""Logging configuration for api-request-synth.

Library modules only call logging.getLogger(__name__); handlers are
installed once by the CLI through configure_logging().
"""

import logging
import sys

DEFAULT_LEVEL = logging.WARNING

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = DEFAULT_LEVEL) -> logging.Logger:
    """Send api_request_synth log records to stderr at the given level.

    stdout is left alone because the CLI writes JSON there.
    """
    logger = logging.getLogger("api_request_synth")
    logger.setLevel(level)

    # Remove existing handlers so repeated CLI invocations don't stack them
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    logger.propagate = False
    return logger
