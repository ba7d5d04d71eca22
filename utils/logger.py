"""
Shared logger for SafeQuery.

The HTTP service installs JSON logging at startup; standalone use of the
library falls back to a dated log file plus stdout.
"""

from datetime import datetime
import logging
import os
from pathlib import Path
import sys
from typing import Optional

LOGGER_NAME = "SafeQuery"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Set on the root logger by whoever owns handler setup
CONFIGURED_MARKER = "_safequery_logging_configured"

_DELEGATED = frozenset({"debug", "info", "warning", "error", "exception", "critical"})


def configure_fallback_logging() -> bool:
    """Install file and stdout handlers unless logging is already set up.

    Returns:
        True if handlers were installed
    """
    root = logging.getLogger()
    if getattr(root, CONFIGURED_MARKER, False) or root.handlers:
        return False

    log_dir = Path(os.environ.get("SAFEQUERY_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"safequery_{datetime.now():%Y%m%d}.log"

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )
    return True


class Logger:
    """Process-wide facade over the ``SafeQuery`` logger.

    ``debug`` through ``critical`` and ``exception`` go straight to the
    underlying :class:`logging.Logger`.
    """

    _instance: Optional["Logger"] = None

    def __new__(cls) -> "Logger":
        if cls._instance is None:
            configure_fallback_logging()
            instance = super().__new__(cls)
            instance.logger = logging.getLogger(LOGGER_NAME)
            cls._instance = instance
        return cls._instance

    def __getattr__(self, name: str):
        if name in _DELEGATED:
            return getattr(self.logger, name)
        raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}")
