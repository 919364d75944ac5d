"""Configuration management with validation.

Connection settings for the remote API client plus logging options. Values
come from environment variables, optionally layered over a YAML profile.

This package ships no transport. The connection settings (zone, API root URL,
credentials, Accept-Language) are read here and handed to whatever client the
caller builds and injects into the services. The request timeout also bounds
service calls through ``Config.call_context()``.
"""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .api import CallContext
from .types import ZONES


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_ZONE = "is1a"
DEFAULT_API_ROOT_URL = "https://secure.sakura.ad.jp/cloud/zone"
DEFAULT_ACCEPT_LANGUAGE = "en-US"
DEFAULT_HTTP_REQUEST_TIMEOUT_SECONDS = 300
MIN_HTTP_REQUEST_TIMEOUT_SECONDS = 1
MAX_HTTP_REQUEST_TIMEOUT_SECONDS = 3600

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")

MAX_PROFILE_FILE_SIZE_BYTES = 64 * 1024

VALID_API_ROOT_URL_PATTERN = r"^https?://[^\s/]+(/\S*)?$"

# Environment variable for each config field
ENV_VARS = {
    "zone": "SAKURACLOUD_ZONE",
    "api_root_url": "SAKURACLOUD_API_ROOT_URL",
    "access_token": "SAKURACLOUD_ACCESS_TOKEN",
    "access_token_secret": "SAKURACLOUD_ACCESS_TOKEN_SECRET",
    "accept_language": "SAKURACLOUD_ACCEPT_LANGUAGE",
    "http_request_timeout_seconds": "SAKURACLOUD_HTTP_REQUEST_TIMEOUT",
    "trace": "SAKURACLOUD_TRACE",
    "log_level": "IAAS_SERVICE_LOG_LEVEL",
    "log_format": "IAAS_SERVICE_LOG_FORMAT",
}

_SECRET_FIELDS = ("access_token", "access_token_secret")


@dataclass(frozen=True)
class Config:
    """Client configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError listing every problem found.
    """

    zone: str = DEFAULT_ZONE
    api_root_url: str = DEFAULT_API_ROOT_URL
    access_token: str = ""
    access_token_secret: str = ""
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    http_request_timeout_seconds: int = DEFAULT_HTTP_REQUEST_TIMEOUT_SECONDS
    trace: bool = False
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self) -> None:
        errors: list[str] = []

        if self.zone not in ZONES:
            errors.append(f"SAKURACLOUD_ZONE must be one of {list(ZONES)}: {self.zone}")

        if not re.match(VALID_API_ROOT_URL_PATTERN, self.api_root_url):
            errors.append(f"SAKURACLOUD_API_ROOT_URL must be an http(s) URL: {self.api_root_url}")

        # Both or neither
        if bool(self.access_token) != bool(self.access_token_secret):
            errors.append("SAKURACLOUD_ACCESS_TOKEN and SAKURACLOUD_ACCESS_TOKEN_SECRET must be set together")

        if not (
            MIN_HTTP_REQUEST_TIMEOUT_SECONDS
            <= self.http_request_timeout_seconds
            <= MAX_HTTP_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"SAKURACLOUD_HTTP_REQUEST_TIMEOUT must be between {MIN_HTTP_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_HTTP_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if self.log_level not in LOG_LEVELS:
            errors.append(f"IAAS_SERVICE_LOG_LEVEL must be one of {list(LOG_LEVELS)}: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            errors.append(f"IAAS_SERVICE_LOG_FORMAT must be one of {list(LOG_FORMATS)}: {self.log_format}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_token and self.access_token_secret)

    def call_context(self, *, cancel_event: threading.Event | None = None) -> CallContext:
        """A call context whose deadline is the configured request timeout."""
        return CallContext.with_timeout(self.http_request_timeout_seconds, cancel_event=cancel_event)

    def masked(self) -> dict[str, Any]:
        """Configuration as a dict with secrets hidden, safe to print or log."""
        data = {name: getattr(self, name) for name in ENV_VARS}
        for name in _SECRET_FIELDS:
            if data[name]:
                data[name] = "********"
        return data

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            SAKURACLOUD_ZONE: Default zone (default: is1a)
            SAKURACLOUD_API_ROOT_URL: API root URL
            SAKURACLOUD_ACCESS_TOKEN: API access token
            SAKURACLOUD_ACCESS_TOKEN_SECRET: API access token secret
            SAKURACLOUD_ACCEPT_LANGUAGE: Accept-Language header (default: en-US)
            SAKURACLOUD_HTTP_REQUEST_TIMEOUT: Request timeout in seconds (default: 300)
            SAKURACLOUD_TRACE: If "true", trace remote calls (default: false)
            IAAS_SERVICE_LOG_LEVEL: Log level (default: INFO)
            IAAS_SERVICE_LOG_FORMAT: "json" or "text" (default: json)
        """
        return cls(**_values_from_env())

    @classmethod
    def from_profile(cls, path: Path) -> Config:
        """Load configuration from a YAML profile, overridden by the environment.

        Profile keys are the config field names (zone, api_root_url, ...).

        Raises:
            ConfigurationError: If the profile cannot be read or holds unknown keys.
        """
        if not path.exists():
            raise ConfigurationError(f"Profile file not found: {path}")

        file_size = path.stat().st_size
        if file_size > MAX_PROFILE_FILE_SIZE_BYTES:
            raise ConfigurationError(
                f"Profile file exceeds maximum size ({file_size} > {MAX_PROFILE_FILE_SIZE_BYTES} bytes): {path}"
            )

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in profile {path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Profile must be a YAML mapping: {path}")

        unknown = sorted(set(raw) - set(ENV_VARS))
        if unknown:
            raise ConfigurationError(f"Unknown profile keys in {path}: {unknown}")

        values: dict[str, Any] = {}
        for key, value in raw.items():
            if key == "http_request_timeout_seconds":
                values[key] = _to_int(key, value)
            elif key == "trace":
                values[key] = _to_bool(value)
            elif key == "log_level":
                values[key] = str(value).upper()
            else:
                values[key] = str(value)
        values.update(_values_from_env())
        return cls(**values)


def _to_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer: {value}") from e


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes")


def _values_from_env() -> dict[str, Any]:
    """Config values for every variable that is set and non-empty."""
    values: dict[str, Any] = {}
    for name, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        if name == "http_request_timeout_seconds":
            values[name] = _to_int(env_var, raw)
        elif name == "trace":
            values[name] = _to_bool(raw)
        elif name == "log_level":
            values[name] = raw.upper()
        else:
            values[name] = raw
    return values
