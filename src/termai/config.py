"""Configuration loading and validation for the TermAI chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

import tomllib

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "termai"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

DEFAULT_SYSTEM_CONTEXT = (
    "You are an AI CLI assistant for a software developer. Provide clear, concise, "
    "and actionable responses focused on commands, debugging, and project "
    "development tasks. Use markdown formatting for code and commands. Ask "
    "clarifying questions if the request is ambiguous."
)


def _non_empty(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata and startup selection."""

    title: str = "TermAI"
    default_profile: str = "default"

    @field_validator("title", "default_profile", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _non_empty(value)


class ProfileConfig(BaseModel):
    """Provider endpoint, credentials and sampling parameters."""

    name: str = "default"
    provider: str = "openai-compatible"
    endpoint: str = "http://localhost:11434/v1"
    api_key: str = ""
    model: str = "llama3.2"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1, le=1_000_000)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    timeout: int = Field(default=30, ge=1, le=3600)

    @field_validator("name", "provider", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty(value)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("api_key must be a string.")
        return value.strip()

    @field_validator("endpoint", mode="before")
    @classmethod
    def _validate_endpoint(cls, value: Any) -> str:
        normalized = _non_empty(value).rstrip("/")
        parsed = urlparse(normalized)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("endpoint must use http or https scheme.")
        if not parsed.hostname:
            raise ValueError("endpoint must include a hostname.")
        return normalized


class ChatConfig(BaseModel):
    """Conversation defaults."""

    system_context: str = DEFAULT_SYSTEM_CONTEXT

    @field_validator("system_context", mode="before")
    @classmethod
    def _normalize_context(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("system_context must be a string.")
        return value.strip()


class FilesConfig(BaseModel):
    """Attachment limits and lifecycle."""

    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    auto_clear_after_send: bool = True


class UIConfig(BaseModel):
    """Rendering preferences."""

    show_thinking: bool = True


class PersistenceConfig(BaseModel):
    """Where ``/save`` and ``/load`` look for transcripts by default."""

    chats_directory: str = "~/.local/share/termai/chats"

    @field_validator("chats_directory", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        return _non_empty(value)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/termai/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _non_empty(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    profiles: list[ProfileConfig] = Field(default_factory=lambda: [ProfileConfig()])
    chat: ChatConfig = ChatConfig()
    files: FilesConfig = FilesConfig()
    ui: UIConfig = UIConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _validate_profiles(self) -> Config:
        if not self.profiles:
            raise ValueError("At least one profile must be configured.")
        names = [profile.name for profile in self.profiles]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate profile names: {', '.join(duplicates)}")
        return self


DEFAULT_CONFIG: dict[str, Any] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values; lists are replaced."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, Any]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else _safe_default_config()
    )
    return _validate_config(merged)


def resolve_profile(config: dict[str, Any], name: str | None = None) -> dict[str, Any]:
    """Return the profile called ``name`` (or the configured default)."""
    wanted = (name or config["app"]["default_profile"]).strip()
    for profile in config["profiles"]:
        if profile["name"] == wanted:
            return dict(profile)
    available = ", ".join(profile["name"] for profile in config["profiles"])
    raise ConfigValidationError(
        f"Profile {wanted!r} not found. Available profiles: {available}"
    )
