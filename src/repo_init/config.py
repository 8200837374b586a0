"""Configuration management for repository initialization."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TypeVar

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

_REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_BRANCH_PREFIXES = ("refs/heads/", "refs/tags/")


class WorkingDirectorySettings(BaseSettings):
    """Values needed to compute the per-branch working directory."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    repository: str = Field(validation_alias="GITHUB_REPOSITORY")
    ref: str = Field(validation_alias="GITHUB_REF")
    working_directory_prefix: str = Field(default="", validation_alias="WORKING_DIRECTORY_PREFIX")
    log_level: str = Field(default="INFO", validation_alias="INIT_LOG_LEVEL")

    @field_validator("repository")
    @classmethod
    def _validate_repository(cls, value: str) -> str:
        normalized = value.strip()
        if not _REPOSITORY_PATTERN.match(normalized):
            raise ValueError("GITHUB_REPOSITORY must use the owner/repo form")
        return normalized

    @field_validator("ref")
    @classmethod
    def _require_ref(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("GITHUB_REF must not be empty")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "INIT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized


class InitSettings(WorkingDirectorySettings):
    """Everything a single ``init`` job reads from its environment."""

    sha: str = Field(validation_alias="GITHUB_SHA")
    actor: str = Field(validation_alias="GITHUB_ACTOR")
    run_id: str = Field(validation_alias="GITHUB_RUN_ID")
    base_ref: str | None = Field(default=None, validation_alias="GITHUB_BASE_REF")
    pipeline_id_file: str = Field(validation_alias="INIT_REPOSITORY_PIPELINE_ID_ENV_FILE")
    working_directory: Path = Field(validation_alias="WORKING_DIRECTORY")
    ssh_private_key: SecretStr | None = Field(default=None, validation_alias="SSH_PRIVATE_KEY")
    ssh_host: str = Field(default="github.com", validation_alias="INIT_SSH_HOST")

    @field_validator("sha", "actor", "run_id", "ssh_host")
    @classmethod
    def _require_value(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("value must not be empty")
        return normalized

    @field_validator("base_ref", mode="before")
    @classmethod
    def _blank_base_ref(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value.strip()

    @field_validator("ssh_private_key", mode="before")
    @classmethod
    def _blank_private_key(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("pipeline_id_file")
    @classmethod
    def _validate_pipeline_id_file(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("value must not be empty")
        if Path(normalized).is_absolute() or ".." in Path(normalized).parts:
            raise ValueError("marker file must be a path relative to the working directory")
        return normalized

    @property
    def remote_url(self) -> str:
        return f"git@{self.ssh_host}:{self.repository}.git"

    @property
    def branch_name(self) -> str:
        for prefix in _BRANCH_PREFIXES:
            if self.ref.startswith(prefix):
                return self.ref[len(prefix) :]
        return self.ref

    @property
    def marker_path(self) -> Path:
        return self.working_directory / self.pipeline_id_file


SettingsT = TypeVar("SettingsT", bound=WorkingDirectorySettings)


def describe_validation_error(exc: ValidationError) -> str:
    """Render a pydantic error as a list of offending environment variables."""

    problems: list[str] = []
    for error in exc.errors():
        name = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        if error.get("type") == "missing":
            problems.append(f"{name} is not set")
        else:
            problems.append(f"{name}: {error.get('msg')}")
    return "Required environment variables are missing or invalid: " + "; ".join(problems)


def load_settings(settings_cls: type[SettingsT] = InitSettings, **overrides) -> SettingsT:  # type: ignore[assignment]
    """Build settings from the environment, raising ``ConfigurationError`` on failure.

    ``overrides`` are keyed by environment variable name and take precedence
    over the process environment.
    """

    try:
        return settings_cls(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(describe_validation_error(exc)) from exc


__all__ = [
    "InitSettings",
    "WorkingDirectorySettings",
    "describe_validation_error",
    "load_settings",
]
