"""
Utils Package - Core utilities for SafeQuery
Contains configuration loading, logging and error reporting utilities
"""

from .config_loader import ConfigLoader
from .error_reporter import ErrorReport, ErrorReporter, ErrorSeverity, get_error_reporter
from .log_sanitizer import sanitize_for_log, sanitize_mapping
from .logger import Logger

__all__ = [
    "ConfigLoader",
    "ErrorReport",
    "ErrorReporter",
    "ErrorSeverity",
    "Logger",
    "get_error_reporter",
    "sanitize_for_log",
    "sanitize_mapping",
]
