"""Validated configuration structs for the AI safety layer.

Every struct is frozen and validated once at construction. Thresholds below 1
fail fast with :class:`ConfigurationError` instead of being silently accepted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any


class SafeQueryError(Exception):
    """Base exception for the AI safety layer."""


class ConfigurationError(SafeQueryError, ValueError):
    """Raised when a configuration value is missing, malformed or out of range."""


def _require_positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be >= 1, got {value}")


def _normalize_blocklist(words: Iterable[str] | str | None) -> frozenset[str]:
    if words is None:
        return frozenset()
    if isinstance(words, str):
        words = words.split(",")
    return frozenset(w.strip().lower() for w in words if w and w.strip())


@dataclass(frozen=True)
class UserLimitConfig:
    """Limits for the per-(user, resource) rate limiter."""

    max_requests_per_minute: int = 60
    max_requests_per_hour: int = 1000

    def __post_init__(self) -> None:
        _require_positive_int("max_requests_per_minute", self.max_requests_per_minute)
        _require_positive_int("max_requests_per_hour", self.max_requests_per_hour)


@dataclass(frozen=True)
class IPLimitConfig:
    """Limits and ban policy for the per-IP rate limiter."""

    max_requests_per_minute: int = 30
    max_requests_per_hour: int = 500
    ban_threshold: int = 10  # hourly violations before a ban
    ban_duration_minutes: int = 60

    def __post_init__(self) -> None:
        _require_positive_int("max_requests_per_minute", self.max_requests_per_minute)
        _require_positive_int("max_requests_per_hour", self.max_requests_per_hour)
        _require_positive_int("ban_threshold", self.ban_threshold)
        _require_positive_int("ban_duration_minutes", self.ban_duration_minutes)


@dataclass(frozen=True)
class FilterConfig:
    """Configuration of the scored PG-13 content filter."""

    strict_mode: bool = True
    custom_blocklist: frozenset[str] = field(default_factory=frozenset)
    allow_educational: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "custom_blocklist", _normalize_blocklist(self.custom_blocklist))


@dataclass(frozen=True)
class SafetyConfig:
    """Top-level configuration handed to the pipeline and the HTTP service."""

    user_limits: UserLimitConfig = field(default_factory=UserLimitConfig)
    ip_limits: IPLimitConfig = field(default_factory=IPLimitConfig)
    content_filter: FilterConfig = field(default_factory=FilterConfig)
    max_prompt_length: int = 500
    max_output_length: int = 5000

    def __post_init__(self) -> None:
        _require_positive_int("max_prompt_length", self.max_prompt_length)
        _require_positive_int("max_output_length", self.max_output_length)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> SafetyConfig:
        """Build a config from nested sections and/or flat option names.

        Keys may be camelCase or snake_case. Flat ``max_requests_per_*`` keys
        configure the user limiter, ``ip_max_requests_per_*`` and ``ban_*``
        keys configure the IP limiter. Flat keys override nested sections.
        Unrecognized options are ignored.
        """
        opts = _snake_keys(options or {})

        user = _section(opts, "user_limits")
        ip = _section(opts, "ip_limits")
        content = _section(opts, "content_filter")

        for name in ("max_requests_per_minute", "max_requests_per_hour"):
            if name in opts:
                user[name] = opts[name]
            if f"ip_{name}" in opts:
                ip[name] = opts[f"ip_{name}"]
        for name in ("ban_threshold", "ban_duration_minutes"):
            if name in opts:
                ip[name] = opts[name]
        for name in ("strict_mode", "custom_blocklist", "allow_educational"):
            if name in opts:
                content[name] = opts[name]

        top = {k: _coerce_int(opts[k]) for k in ("max_prompt_length", "max_output_length") if k in opts}

        return cls(
            user_limits=UserLimitConfig(**_known(UserLimitConfig, user)),
            ip_limits=IPLimitConfig(**_known(IPLimitConfig, ip)),
            content_filter=FilterConfig(**_known(FilterConfig, content)),
            **top,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_limits": {
                "max_requests_per_minute": self.user_limits.max_requests_per_minute,
                "max_requests_per_hour": self.user_limits.max_requests_per_hour,
            },
            "ip_limits": {
                "max_requests_per_minute": self.ip_limits.max_requests_per_minute,
                "max_requests_per_hour": self.ip_limits.max_requests_per_hour,
                "ban_threshold": self.ip_limits.ban_threshold,
                "ban_duration_minutes": self.ip_limits.ban_duration_minutes,
            },
            "content_filter": {
                "strict_mode": self.content_filter.strict_mode,
                "custom_blocklist": sorted(self.content_filter.custom_blocklist),
                "allow_educational": self.content_filter.allow_educational,
            },
            "max_prompt_length": self.max_prompt_length,
            "max_output_length": self.max_output_length,
        }


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_keys(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {_snake_case(str(k)): v for k, v in mapping.items()}


def _section(opts: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = opts.get(name)
    if isinstance(value, Mapping):
        return _snake_keys(value)
    return {}


def _coerce_int(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return value


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return value


def _known(struct: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Keep recognized fields of ``struct`` and coerce string values."""
    result: dict[str, Any] = {}
    for f in fields(struct):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name in {"strict_mode", "allow_educational"}:
            value = _coerce_bool(value)
        elif f.name != "custom_blocklist":
            value = _coerce_int(value)
        result[f.name] = value
    return result
