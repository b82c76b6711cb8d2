"""Configuration loading and the BootguardConfig model."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..exceptions import InvalidConfigurationError
from .paths import get_database_path, get_default_config_path
from .policy import ScoringPolicy
from .scheduling import FeatureDefinition, SchedulingSettings, _default_catalog


class StorageSettings(BaseModel):
    """Where installation state and deferred tasks live."""
    backend: Literal["duckdb", "memory"] = "duckdb"
    db_path: Optional[Path] = Field(default=None, description="DuckDB file; BOOTGUARD_DATABASE_PATH when unset")
    state_key: str = Field(default="bootguard_installation_state", min_length=1)
    disabled_flag_key: str = Field(default="bootguard_disabled", min_length=1)
    max_retries: int = Field(default=3, ge=1, le=10)

    def resolved_db_path(self) -> Path:
        if self.db_path is not None:
            path = Path(self.db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            return path.resolve()
        return get_database_path()


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files; console only when unset")

    @model_validator(mode="after")
    def _check_level(self) -> "LoggingSettings":
        self.level = self.level.upper()
        if self.level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {self.level}")
        return self


class BootguardConfig(BaseModel):
    """Top-level configuration."""

    model_config = ConfigDict(extra="forbid")

    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    features: List[FeatureDefinition] = Field(default_factory=_default_catalog)
    activators: Optional[str] = Field(
        default=None,
        description="module:attribute of the host's feature activators, a mapping or a callable returning one",
    )

    @field_validator("activators")
    @classmethod
    def _check_activators(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        module, _, attribute = v.partition(":")
        if not module.strip() or not attribute.strip():
            raise ValueError(f"activators must look like 'package.module:attribute', got '{v}'")
        return v.strip()

    @model_validator(mode="after")
    def _check_catalog(self) -> "BootguardConfig":
        ids = [feature.id for feature in self.features]
        if len(set(ids)) != len(ids):
            raise ValueError("feature catalog contains duplicate ids")
        overlap = set(ids) & set(self.scheduling.core_features)
        if overlap:
            raise ValueError(
                f"core features cannot also be selectable: {', '.join(sorted(overlap))}"
            )
        return self

    def feature_ids(self) -> List[str]:
        return [feature.id for feature in self.features]

    def default_features(self) -> List[str]:
        return [feature.id for feature in self.features if feature.default_enabled]

    def get_feature(self, feature_id: str) -> Optional[FeatureDefinition]:
        for feature in self.features:
            if feature.id == feature_id:
                return feature
        return None


def _lower_keys(d: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize dictionary keys to lowercase."""
    return {k.lower(): v for k, v in d.items()}


def _apply_env_overrides(cfg: Dict[str, Any], env: Dict[str, str], prefix: str) -> None:
    """Apply simple env overrides using DOUBLE-UNDERSCORE path syntax.

    Example: BOOTGUARD__SCHEDULING__MAX_ATTEMPTS=3 overrides scheduling.max_attempts
    """
    plen = len(prefix)
    for key, value in env.items():
        if not key.startswith(prefix):
            continue
        path = key[plen:].lower().split("__")
        cur: Any = cfg
        for part in path[:-1]:
            if part not in cur or not isinstance(cur[part], dict):
                cur[part] = {}
            cur = cur[part]
        leaf = path[-1]
        if value.lower() in {"true", "false"}:
            cur[leaf] = value.lower() == "true"
        else:
            try:
                if "." in value:
                    cur[leaf] = float(value)
                else:
                    cur[leaf] = int(value)
            except ValueError:
                cur[leaf] = value


def load_bootguard_config(
    path: Path | str | None = None,
    *,
    env_overrides: bool = True,
    env: Optional[Dict[str, str]] = None,
    env_prefix: str = "BOOTGUARD__",
) -> BootguardConfig:
    """Load YAML config and return a typed `BootguardConfig`.

    - A missing file yields the defaults
    - Optionally applies environment variable overrides
    - Any malformed content raises InvalidConfigurationError
    """
    p = Path(path) if path is not None else get_default_config_path()

    raw: Any = {}
    if p.exists():
        try:
            with open(p, "r") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise InvalidConfigurationError(f"Configuration is not valid YAML: {e}", config_path=str(p)) from e

    if not isinstance(raw, dict):
        raise InvalidConfigurationError("Configuration root must be a mapping", config_path=str(p))

    data = _lower_keys(raw)

    if env_overrides:
        _apply_env_overrides(data, env if env is not None else dict(os.environ), env_prefix)

    try:
        return BootguardConfig(**data)
    except ValidationError as e:
        raise InvalidConfigurationError(f"Invalid bootguard configuration: {e}", config_path=str(p)) from e
