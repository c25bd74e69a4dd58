# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.settings",
#   "purpose": "Typed settings, environment overrides, and settings file loading",
#   "sections": [
#     {
#       "id": "loggingconfiguration",
#       "name": "LoggingConfiguration",
#       "anchor": "class-loggingconfiguration",
#       "kind": "class"
#     },
#     {
#       "id": "httpconfiguration",
#       "name": "HttpConfiguration",
#       "anchor": "class-httpconfiguration",
#       "kind": "class"
#     },
#     {
#       "id": "loadersettings",
#       "name": "LoaderSettings",
#       "anchor": "class-loadersettings",
#       "kind": "class"
#     },
#     {
#       "id": "environmentoverrides",
#       "name": "EnvironmentOverrides",
#       "anchor": "class-environmentoverrides",
#       "kind": "class"
#     },
#     {
#       "id": "load-settings",
#       "name": "load_settings",
#       "anchor": "function-load-settings",
#       "kind": "function"
#     },
#     {
#       "id": "get-default-settings",
#       "name": "get_default_settings",
#       "anchor": "function-get-default-settings",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the property loader.

This module defines the typed settings consumed by the fetch strategies, the
shared HTTP client, the snapshot cache, and the logging helpers. Values come
from three layers applied in order: model defaults, an optional YAML settings
file, and ``PROPSAGENT_*`` environment variables read through
``pydantic-settings``. The resolved :class:`LoaderSettings` is memoised so that
start-up hooks and the CLI share one view of the configuration.
"""

from __future__ import annotations

import codecs
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pystow
import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

__all__ = [
    "DATA_ROOT",
    "LOG_DIR",
    "CACHE_SUFFIX",
    "SOURCES_ENV_VAR",
    "LoggingConfiguration",
    "HttpConfiguration",
    "LoaderSettings",
    "EnvironmentOverrides",
    "load_settings",
    "get_default_settings",
    "invalidate_default_settings",
]

DATA_ROOT = pystow.join("props-agent")
LOG_DIR = DATA_ROOT / "logs"
CACHE_SUFFIX = ".cache"
SOURCES_ENV_VAR = "PROPSAGENT_SOURCES"


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for the property loader."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for JSON log files; defaults to ~/.data/props-agent/logs"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    def resolved_log_dir(self) -> Path:
        return self.log_dir or LOG_DIR

    model_config = {"validate_assignment": True}


class HttpConfiguration(BaseModel):
    """HTTP client settings used when fetching ``http:`` and ``https:`` sources.

    The loader issues a single streaming GET per source and never retries; a
    failed request simply falls back to the cached snapshot. Timeouts are the
    only bound on how long start-up can block on an unreachable host.
    """

    timeout_sec: float = Field(default=30.0, gt=0, description="Read/write timeout in seconds")
    connect_timeout_sec: float = Field(default=5.0, gt=0, description="Connect timeout in seconds")
    pool_timeout_sec: float = Field(default=5.0, gt=0)
    follow_redirects: bool = Field(default=True)
    verify_tls: bool = Field(default=True, description="Verify server certificates using certifi")
    http2_enabled: bool = Field(default=False)
    chunk_size: int = Field(default=64 * 1024, gt=0, description="Streaming chunk size in bytes")
    user_agent: str = Field(default="PropsAgent/1.0 (+property-loader)")
    extra_headers: Dict[str, str] = Field(default_factory=dict)

    def polite_http_headers(self) -> Dict[str, str]:
        """Return the default headers attached to every outgoing request."""

        headers = {"User-Agent": self.user_agent, "Accept": "text/plain, */*"}
        headers.update(self.extra_headers)
        return headers

    model_config = {"validate_assignment": True, "extra": "ignore"}


class LoaderSettings(BaseModel):
    """Top-level settings for the fetch, cache, and merge pipeline."""

    cache_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory holding snapshot files; defaults to the temp directory",
    )
    cache_suffix: str = Field(default=CACHE_SUFFIX)
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    force_marker: str = Field(default="!", min_length=1, max_length=1)
    encoding: str = Field(default="iso-8859-1", description="Text encoding of snapshot payloads")
    http: HttpConfiguration = Field(default_factory=HttpConfiguration)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    @field_validator("cache_suffix")
    @classmethod
    def validate_suffix(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("cache_suffix must be a non-empty file name suffix")
        return value

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as exc:
            raise ValueError(f"unknown encoding {value!r}") from exc
        return value

    model_config = {"validate_assignment": True, "extra": "forbid"}


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    cache_dir: Optional[Path] = Field(default=None, alias="PROPSAGENT_CACHE_DIR")
    cache_suffix: Optional[str] = Field(default=None, alias="PROPSAGENT_CACHE_SUFFIX")
    timeout_sec: Optional[float] = Field(default=None, alias="PROPSAGENT_TIMEOUT_SEC")
    connect_timeout_sec: Optional[float] = Field(
        default=None, alias="PROPSAGENT_CONNECT_TIMEOUT_SEC"
    )
    user_agent: Optional[str] = Field(default=None, alias="PROPSAGENT_USER_AGENT")
    log_level: Optional[str] = Field(default=None, alias="PROPSAGENT_LOG_LEVEL")
    log_dir: Optional[Path] = Field(default=None, alias="PROPSAGENT_LOG_DIR")

    model_config = SettingsConfigDict(
        env_prefix="PROPSAGENT_", case_sensitive=False, extra="ignore"
    )


def _read_settings_file(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read settings file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Settings file {path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Settings file {path} must contain a mapping at the top level")
    return dict(data)


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Settings section {name!r} must be a mapping, got {type(value).__name__}")
    return dict(value)


def _apply_environment(data: Dict[str, Any], overrides: EnvironmentOverrides) -> Dict[str, Any]:
    env = overrides.model_dump(exclude_none=True)
    http = _section(data, "http")
    logging_cfg = _section(data, "logging")
    for key in ("cache_dir", "cache_suffix"):
        if key in env:
            data[key] = env[key]
    for key in ("timeout_sec", "connect_timeout_sec", "user_agent"):
        if key in env:
            http[key] = env[key]
    if "log_level" in env:
        logging_cfg["level"] = env["log_level"]
    if "log_dir" in env:
        logging_cfg["log_dir"] = env["log_dir"]
    if http:
        data["http"] = http
    if logging_cfg:
        data["logging"] = logging_cfg
    return data


def load_settings(
    path: Optional[Path] = None,
    *,
    environment: Optional[EnvironmentOverrides] = None,
) -> LoaderSettings:
    """Build :class:`LoaderSettings` from defaults, ``path``, and the environment.

    Args:
        path: Optional YAML settings file whose top-level keys mirror
            :class:`LoaderSettings`.
        environment: Pre-built overrides; read from ``os.environ`` when omitted.

    Returns:
        LoaderSettings: Validated settings.

    Raises:
        ConfigError: If the file cannot be read or any value fails validation.
    """

    data: Dict[str, Any] = _read_settings_file(path) if path is not None else {}
    try:
        overrides = environment if environment is not None else EnvironmentOverrides()
        data = _apply_environment(data, overrides)
        return LoaderSettings.model_validate(data)
    except PydanticValidationError as exc:
        source = f" in {path}" if path is not None else ""
        raise ConfigError(f"Invalid property loader settings{source}: {exc}") from exc


_DEFAULT_SETTINGS_LOCK = threading.Lock()
_DEFAULT_SETTINGS: Optional[LoaderSettings] = None


def get_default_settings(*, copy: bool = False) -> LoaderSettings:
    """Return memoised settings built from defaults and the environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS is None:
            _DEFAULT_SETTINGS = load_settings()
        cached = _DEFAULT_SETTINGS
    if copy:
        return cached.model_copy(deep=True)
    return cached


def invalidate_default_settings() -> None:
    """Invalidate the cached default settings."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS = None
