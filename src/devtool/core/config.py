"""Layered devtool settings.

Precedence, highest first: ``DEVTOOL_*`` environment variables (``__``
separates nested groups, e.g. ``DEVTOOL_SCHEDULER__JOBS=1``), the TOML or
JSON config file, then the defaults below.

``load_config()`` is the only entry point the CLI uses. It never raises;
an unreadable or invalid file puts the CLI in Safe Mode with defaults.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Iterator, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_ENV_VAR = "DEVTOOL_CONFIG"
ENV_PREFIX = "DEVTOOL_"
ENV_NESTED_DELIMITER = "__"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "devtool" / "config.toml"

# Parsed config file for the AppConfig currently being built
_file_data: ContextVar[Mapping[str, Any]] = ContextVar("devtool_config_file", default={})


class ConfigError(RuntimeError):
    """The config file exists but cannot be used."""


class SchedulerConfig(BaseModel):
    jobs: int = Field(default=3, ge=1, description="Maximum tools updated concurrently.")
    grace_period: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds to wait for in-flight updates after cancellation.",
    )


class UIConfig(BaseModel):
    log_level: str = Field(default="INFO", description="Log level for devtool output.")
    refresh_per_second: float = Field(
        default=4.0, gt=0.0, description="Upper bound on live progress redraws per second."
    )
    show_banner: bool = Field(default=True, description="Print the start banner.")
    compact: bool = Field(
        default=False, description="Print one line per finished tool instead of a live table."
    )


class ToolsConfig(BaseModel):
    """Which tools run and what each one waits for."""

    disabled: list[str] = Field(
        default_factory=list, description="Tool ids to leave out of every run."
    )
    prerequisites: dict[str, list[str]] = Field(
        # brew upgrade may replace a Homebrew-installed mise binary mid-run
        default_factory=lambda: {"mise": ["homebrew"]},
        description="Tool id -> ids that must finish first.",
    )
    keep_logs: bool = Field(default=False, description="Write each command's output to log_dir.")
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "devtool" / "logs",
        description="Directory for per-command logs when keep_logs is enabled.",
    )

    @field_validator("disabled", mode="after")
    @classmethod
    def normalize_disabled(cls, v: list[str]) -> list[str]:
        return [item.strip().lower() for item in v if item.strip()]


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse ``path`` as JSON (``.json``) or TOML; a missing file is empty.

    Raises:
        ConfigError: The file cannot be read or parsed, or its root is not a table.
    """
    if not path.is_file():
        return {}

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc

    try:
        data = json.loads(raw) if path.suffix.lower() == ".json" else tomllib.loads(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")
    return data


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings source backed by an already-parsed config file."""

    def __init__(self, settings_cls: type[BaseSettings], data: Mapping[str, Any]) -> None:
        super().__init__(settings_cls)
        self._data = dict(data)

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        fields = self.settings_cls.model_fields
        return {name: value for name, value in self._data.items() if name in fields}


class AppConfig(BaseSettings):
    """All devtool settings, grouped by concern."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter=ENV_NESTED_DELIMITER,
        extra="ignore",
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    dry_run: bool = Field(
        default=False, description="If true, plans every update without running commands."
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            ConfigFileSource(settings_cls, _file_data.get()),
        )

    def flattened(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(group.key, value)`` pairs, top-level scalars as ``key``."""
        for name, value in self.model_dump().items():
            if isinstance(value, dict) and name in _GROUPS:
                for key, inner in value.items():
                    yield f"{name}.{key}", inner
            else:
                yield name, value


_GROUPS: dict[str, type[BaseModel]] = {
    name: info.annotation
    for name, info in AppConfig.model_fields.items()
    if isinstance(info.annotation, type) and issubclass(info.annotation, BaseModel)
}


def env_overrides(environ: Mapping[str, str]) -> set[str]:
    """Dotted names of settings that ``environ`` overrides."""
    found: set[str] = set()
    for name in AppConfig.model_fields:
        group = _GROUPS.get(name)
        if group is None:
            if f"{ENV_PREFIX}{name}".upper() in environ:
                found.add(name)
            continue
        for key in group.model_fields:
            if f"{ENV_PREFIX}{name}{ENV_NESTED_DELIMITER}{key}".upper() in environ:
                found.add(f"{name}.{key}")
    return found


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str] = field(default_factory=set)
    error: str | None = None


def resolve_config_path(config_path: Path | None = None) -> Path:
    candidate = config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return Path(candidate).expanduser()


def load_config(config_path: Path | None = None) -> tuple[AppConfig, ConfigLoadResult]:
    """Load settings in Safe Mode.

    Any file or validation problem is reported in ``ConfigLoadResult.error``
    and the returned config is all defaults.
    """
    path = resolve_config_path(config_path)
    meta = ConfigLoadResult(path=path, file_loaded=False, env_overrides=env_overrides(os.environ))

    try:
        data = read_config_file(path)
        meta.file_loaded = path.is_file()
        token = _file_data.set(data)
        try:
            config = AppConfig()
        finally:
            _file_data.reset(token)
        return config, meta
    except (ConfigError, ValidationError) as exc:
        meta.error = str(exc)
        return AppConfig.model_construct(), meta


__all__ = [
    "AppConfig",
    "CONFIG_ENV_VAR",
    "ConfigError",
    "ConfigLoadResult",
    "SchedulerConfig",
    "ToolsConfig",
    "UIConfig",
    "load_config",
    "read_config_file",
]
