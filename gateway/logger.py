#!/usr/bin/env python3

import logging
import sys
from pathlib import Path

# --- Logging Configuration ---
DEFAULT_LOG_FILE = Path("/var/log/pia-gateway.log")
DEFAULT_FORMAT = '%(asctime)s - %(levelname)s: %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'

LOG_LEVELS = {
    5: logging.DEBUG,      # DEBUG
    4: logging.DEBUG,      # VARIABLES (Mapped to DEBUG)
    3: logging.INFO,       # INFO
    2: logging.INFO,       # SUCCESS (Mapped to INFO)
    1: logging.ERROR,      # ERROR
    0: logging.INFO,       # STATUS (Mapped to INFO)
}

# Prefixes for the levels that share a logging level with another one
LEVEL_TAGS = {
    4: "VARIABLES",
    2: "SUCCESS",
    0: "STATUS",
}

logger = logging.getLogger("gateway")

_configured = False


def setup_logging(verbosity_level, log_file=DEFAULT_LOG_FILE,
                  log_format=DEFAULT_FORMAT, date_format=DEFAULT_DATE_FORMAT):
    """Configures logging based on the provided verbosity level."""
    global _configured

    log_level = LOG_LEVELS.get(verbosity_level, logging.ERROR) # Default to ERROR
    logger.setLevel(log_level)
    logger.propagate = False

    # Re-running setup (tests, config reloads) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode='a')
        except OSError as e:
            print(f"Warning: cannot open log file {log_file}: {e}", file=sys.stderr)
        else:
            file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
            logger.addHandler(file_handler)

    # systemd captures stdout into the journal, which adds its own timestamps
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    _configured = True

    log_message(3, f"Logging initialized with verbosity level {verbosity_level} ({logging.getLevelName(log_level)}).")
    return log_message


def log_message(level, message):
    """Logs a message using the numeric verbosity levels (0=STATUS .. 5=DEBUG)."""
    if not _configured:
        print(f"[{level}] {message}")
        return

    actual_level = LOG_LEVELS.get(level, logging.INFO)
    tag = LEVEL_TAGS.get(level)
    if tag:
        message = f"({tag}) {message}"
    logger.log(actual_level, message)
