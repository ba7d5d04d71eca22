"""
Configuration Loader for SafeQuery
Handles loading safety configuration from defaults, a JSON file, .env and
the process environment
"""

import json
import os
from pathlib import Path
from typing import Any, cast

import aiofiles

from ai_safety.config import SafetyConfig

from .logger import Logger

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "safety_config.json"

# Environment variable -> dotted config key
ENV_MAPPINGS: dict[str, str] = {
    "SAFEQUERY_USER_MAX_PER_MINUTE": "user_limits.max_requests_per_minute",
    "SAFEQUERY_USER_MAX_PER_HOUR": "user_limits.max_requests_per_hour",
    "SAFEQUERY_IP_MAX_PER_MINUTE": "ip_limits.max_requests_per_minute",
    "SAFEQUERY_IP_MAX_PER_HOUR": "ip_limits.max_requests_per_hour",
    "SAFEQUERY_BAN_THRESHOLD": "ip_limits.ban_threshold",
    "SAFEQUERY_BAN_DURATION_MINUTES": "ip_limits.ban_duration_minutes",
    "SAFEQUERY_STRICT_MODE": "content_filter.strict_mode",
    "SAFEQUERY_ALLOW_EDUCATIONAL": "content_filter.allow_educational",
    "SAFEQUERY_CUSTOM_BLOCKLIST": "content_filter.custom_blocklist",
    "SAFEQUERY_MAX_PROMPT_LENGTH": "max_prompt_length",
    "SAFEQUERY_MAX_OUTPUT_LENGTH": "max_output_length",
    "LOG_LEVEL": "logging.level",
}

# Comma-separated values, never coerced to numbers
CSV_ENV_KEYS = frozenset({"SAFEQUERY_CUSTOM_BLOCKLIST"})


def _parse_env_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    # Remove quotes if present
    return key.strip(), value.strip().strip('"').strip("'")


def load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from .env file"""
    env_vars: dict[str, str] = {}
    if env_path.exists():
        try:
            with open(env_path, encoding="utf-8") as f:
                for line in f:
                    parsed = _parse_env_line(line)
                    if parsed:
                        env_vars[parsed[0]] = parsed[1]
        except (OSError, UnicodeDecodeError) as e:
            Logger().error(f"Error loading .env file: {e}")
    return env_vars


async def load_env_file_async(env_path: Path) -> dict[str, str]:
    """Load environment variables from .env file asynchronously"""
    env_vars: dict[str, str] = {}
    if env_path.exists():
        try:
            async with aiofiles.open(env_path, encoding="utf-8") as f:
                async for line in f:
                    parsed = _parse_env_line(line)
                    if parsed:
                        env_vars[parsed[0]] = parsed[1]
        except (OSError, UnicodeDecodeError) as e:
            Logger().error(f"Error loading .env file: {e}")
    return env_vars


def _convert_env_value(env_key: str, raw_value: str) -> Any:
    """Convert a raw environment string to a bool, int, list or string."""
    if env_key in CSV_ENV_KEYS:
        return [item.strip() for item in raw_value.split(",") if item.strip()]
    lv = raw_value.strip().lower()
    if lv in ("true", "false"):
        return lv == "true"
    try:
        return int(raw_value)
    except ValueError:
        return raw_value  # keep as string when not a number


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary, handling dicts, lists, and non-dict types"""
    for key, value in override.items():
        if key in base:
            if isinstance(base[key], dict) and isinstance(value, dict):
                _deep_merge(base[key], value)
            elif isinstance(base[key], list) and isinstance(value, list):
                # Merge lists: concatenate and deduplicate, preserving order
                base[key] = base[key] + [item for item in value if item not in base[key]]
            else:
                base[key] = value
        else:
            base[key] = value


class ConfigLoader:
    """Loads and manages the safety configuration"""

    def __init__(self, config_path: Path | None = None, *, autoload: bool = True):
        self.config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
        self.env_path = self.config_path.parent / ".env"
        Logger().debug(f"ConfigLoader init - config_path: {self.config_path}")

        self.config_data: dict[str, Any] = {}
        self.env_vars: dict[str, str] = {}
        if autoload:
            self.load_config()

    def load_config(self) -> None:
        """Load configuration from file and environment"""
        # Load .env file first
        self.env_vars = load_env_file(self.env_path)
        self.create_default_config()

        try:
            if self.config_path.exists():
                with open(self.config_path, encoding="utf-8") as f:
                    self._merge_config(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            Logger().error(f"Error loading config: {e}")
            self.create_default_config()

        # Override with environment variables (highest priority)
        self._apply_env_overrides()

    async def load_config_async(self) -> None:
        """Load configuration from file and environment asynchronously"""
        self.env_vars = await load_env_file_async(self.env_path)
        self.create_default_config()

        try:
            if self.config_path.exists():
                async with aiofiles.open(self.config_path, encoding="utf-8") as f:
                    content = await f.read()
                    self._merge_config(json.loads(content))
        except (OSError, json.JSONDecodeError) as e:
            Logger().error(f"Error loading config: {e}")
            self.create_default_config()

        self._apply_env_overrides()

    def _merge_config(self, file_config: Any) -> None:
        """Merge config file data with existing config data (defaults)"""
        if not isinstance(file_config, dict):
            Logger().warning(f"Ignoring config file {self.config_path}: top level is not an object")
            return
        _deep_merge(self.config_data, file_config)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to config"""
        for env_key, config_key in ENV_MAPPINGS.items():
            if env_key in os.environ:
                raw_value = os.environ[env_key]
            elif env_key in self.env_vars:
                raw_value = self.env_vars[env_key]
            else:
                continue
            self.set(config_key, _convert_env_value(env_key, raw_value))

    def create_default_config(self) -> None:
        """Reset to the default configuration"""
        self.config_data = SafetyConfig().to_dict()
        self.config_data["logging"] = {"level": "INFO"}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'ip_limits.ban_threshold')"""
        current: Any = self.config_data

        for k in key.split("."):
            if isinstance(current, dict):
                mapping: dict[str, Any] = cast("dict[str, Any]", current)
                if k in mapping:
                    current = mapping[k]
                else:
                    return default
            else:
                return default

        return current

    def get_env(self, key: str, default: str = "") -> str:
        """Get a value loaded from the .env file"""
        return self.env_vars.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        keys = key.split(".")
        config = self.config_data

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def to_safety_config(self) -> SafetyConfig:
        """Build the validated safety configuration.

        Raises:
            ConfigurationError: If a threshold is malformed or below 1
        """
        return SafetyConfig.from_mapping(self.config_data)
