"""
Log sanitization utilities for SafeQuery.

User ids, prompts and IP keys end up in log lines; these helpers neutralize
them before logging to prevent log injection.
"""

import re
from collections.abc import Mapping
from typing import Any

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]")


def sanitize_for_log(value: Any, max_length: int = 200) -> str:
    """
    Sanitize a value for safe logging.

    Escapes newlines, carriage returns and tabs, drops other control
    characters and limits the length to prevent log spam.

    Args:
        value: The value to sanitize (will be converted to string)
        max_length: Maximum length of the sanitized output

    Returns:
        Sanitized string safe for logging
    """
    if value is None:
        return "None"

    sanitized = str(value).replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    sanitized = _CONTROL_CHARS.sub("", sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 3] + "..."

    return sanitized


def sanitize_mapping(values: Mapping[str, Any] | None, max_length: int = 200) -> dict[str, Any]:
    """
    Sanitize the string values of a flat mapping, e.g. an error context.

    Numbers, booleans and None are kept as-is so structured log fields keep
    their types; everything else is passed through :func:`sanitize_for_log`.
    """
    if not values:
        return {}
    result: dict[str, Any] = {}
    for key, value in values.items():
        if value is None or isinstance(value, (bool, int, float)):
            result[str(key)] = value
        else:
            result[str(key)] = sanitize_for_log(value, max_length)
    return result
