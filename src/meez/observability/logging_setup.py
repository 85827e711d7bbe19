"""Process-wide logging configuration for the CLI and API server."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Chatty client libraries
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "hpack", "urllib3")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stderr and quiet HTTP client internals."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
