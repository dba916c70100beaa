"""
logging_config.py — Centralized Logging Configuration for the Order Relay

Configures one logging setup for the whole process so that every module logs
in the same format to the console and, optionally, to a file.

Features:
    • Console output on stdout (container friendly), optional file output
    • Process ID tagging for multi-worker visibility
    • Reduced verbosity for the HTTP client libraries (httpx, httpcore)
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'


def setup_logging(level="INFO", log_file=""):
    """
    Configures the global logging system for the relay.

    Args:
        level (str): Root log level name, e.g. "INFO" or "DEBUG".
        log_file (str): Optional path of a persistent log file. Empty disables it.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # httpx logs every request at INFO, including the signed query string
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a logger for a module or component name.

    Args:
        name (str): The logger name, typically the module's __name__.

    Returns:
        logging.Logger: A logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
