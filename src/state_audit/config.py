"""Configuration management for the state_audit engine."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

MessagesStorageSetting = Literal["auto", "array", "string"]


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    structured: bool = Field(
        default=False,
        description=(
            "If True, log messages are bare event names and parameters are passed "
            "in the record's extra 'params'. If False, parameters are rendered "
            "into the message as key=value pairs."
        ),
    )


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/state_audit.sqlite")
    sqlite_wal: bool = Field(default=True)
    lock_timeout_seconds: float = Field(default=5.0, gt=0, le=600)


class AuditSettings(BaseModel):
    association: str = Field(
        default="audit_logs",
        description="Default name of the audit-log association on entity types.",
    )
    messages_storage: MessagesStorageSetting = Field(
        default="auto",
        description="auto | array | string; auto inspects the declared column type.",
    )
    machines_path: str | None = Field(
        default=None,
        description="Optional YAML file with machine definitions.",
    )

    @field_validator("association")
    @classmethod
    def _validate_association(cls, value: str) -> str:
        value = value.strip()
        if not value.isidentifier():
            raise ValueError(f"Audit association must be an identifier, got {value!r}")
        return value

    @field_validator("messages_storage", mode="before")
    @classmethod
    def _normalize_messages_storage(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "structured_logging": "STATE_AUDIT_STRUCTURED_LOGGING",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "lock_timeout": "SQLITE_LOCK_TIMEOUT_SECONDS",
    "association": "STATE_AUDIT_ASSOCIATION",
    "messages_storage": "STATE_AUDIT_MESSAGES_STORAGE",
    "machines_path": "STATE_AUDIT_MACHINES_PATH",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    machines_path_env = os.getenv(ENV_KEYS["machines_path"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
            "structured": _env_bool(
                ENV_KEYS["structured_logging"], LoggingSettings().structured
            ),
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
            "lock_timeout_seconds": _env_float(
                ENV_KEYS["lock_timeout"], StorageSettings().lock_timeout_seconds
            ),
        },
        "audit": {
            "association": os.getenv(ENV_KEYS["association"], AuditSettings().association),
            "messages_storage": os.getenv(
                ENV_KEYS["messages_storage"], AuditSettings().messages_storage
            ),
            "machines_path": _resolve_path(machines_path_env) if machines_path_env else None,
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    return settings
