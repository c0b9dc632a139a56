# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.settings",
#   "purpose": "Pydantic configuration models, YAML loading and environment overrides",
#   "sections": [
#     {"id": "models", "name": "Settings Models", "anchor": "MOD", "kind": "api"},
#     {"id": "env", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "loading", "name": "Loading", "anchor": "LOD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Engine configuration.

Settings are frozen pydantic models so a loaded configuration can be shared
between engines and threads.  A YAML document mirrors the model layout::

    trusted: false
    language_code: en
    default_host: www.example.org
    domains:
      https: [example.org]
      http: []
      upload: [upload.example.org]
      sparql: [query.example.org]
      maps: [maps.example.org]
    domain_map:
      example: example.org
    logging:
      level: INFO
      emit_json_logs: false

Environment variables prefixed with ``GRAPHGUARD_`` override ``trusted``,
``language_code`` and the logging level.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .allowlist import DomainMatcher
from .errors import ConfigurationError

__all__ = [
    "DEDICATED_FAMILIES",
    "DomainSettings",
    "EngineSettings",
    "EnvironmentOverrides",
    "LoggingSettings",
    "apply_environment_overrides",
    "load_raw_yaml",
    "load_settings",
]

#: Families that back exactly one group of kinds and match hosts exactly
DEDICATED_FAMILIES = ("upload", "sparql", "maps")

_LANGUAGE_RE = re.compile(r"[-_0-9a-zA-Z]+")

# ============================================================================
# Settings Models
# ============================================================================


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    emit_json_logs: bool = Field(
        default=False,
        description="Emit JSON-formatted logs",
        validation_alias=AliasChoices("emit_json_logs", "json"),
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        return getattr(logging, self.level)


class DomainSettings(BaseModel):
    """Allowlisted domain patterns per protocol family.

    ``https`` and ``http`` are the general families and cover subdomains of
    every entry.  The dedicated families match exactly (``*.`` patterns opt
    into subdomains); leaving one unset disables the kinds that need it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    https: List[str] = Field(default_factory=list)
    http: List[str] = Field(default_factory=list)
    upload: Optional[List[str]] = None
    sparql: Optional[List[str]] = None
    maps: Optional[List[str]] = None

    @field_validator("https", "http", "upload", "sparql", "maps")
    @classmethod
    def validate_patterns(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        try:
            DomainMatcher(v)
        except ConfigurationError as exc:
            raise ValueError(exc.message) from exc
        return [entry.strip() for entry in v if entry.strip()]

    def as_mapping(self) -> Dict[str, List[str]]:
        """Return configured families only (unset dedicated families omitted)."""
        return {name: list(value) for name, value in self.model_dump().items() if value is not None}


class EngineSettings(BaseModel):
    """Everything needed to construct a ``ProtocolEngine``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    trusted: bool = False
    domains: DomainSettings = Field(default_factory=DomainSettings)
    domain_map: Dict[str, str] = Field(default_factory=dict)
    language_code: str = "en"
    default_host: Optional[str] = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("language_code")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if not _LANGUAGE_RE.fullmatch(v):
            raise ValueError(f"language_code must be letters/numbers/dash/underscores, got '{v}'")
        return v

    @field_validator("domain_map")
    @classmethod
    def normalize_domain_map(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {key.strip().lower(): value.strip().lower() for key, value in v.items()}


# ============================================================================
# EnvironmentOverrides
# ============================================================================


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    trusted: Optional[bool] = Field(default=None, alias="GRAPHGUARD_TRUSTED")
    language_code: Optional[str] = Field(default=None, alias="GRAPHGUARD_LANGUAGE_CODE")
    log_level: Optional[str] = Field(default=None, alias="GRAPHGUARD_LOG_LEVEL")

    model_config = SettingsConfigDict(env_prefix="GRAPHGUARD_", case_sensitive=False, extra="ignore")


def apply_environment_overrides(
    settings: EngineSettings, overrides: Optional[EnvironmentOverrides] = None
) -> EngineSettings:
    """Return ``settings`` with any ``GRAPHGUARD_*`` values applied."""

    env = overrides if overrides is not None else EnvironmentOverrides()
    data = settings.model_dump()
    if env.trusted is not None:
        data["trusted"] = env.trusted
    if env.language_code is not None:
        data["language_code"] = env.language_code
    if env.log_level is not None:
        data["logging"]["level"] = env.log_level
    return _validate(data, source="environment")


# ============================================================================
# Loading
# ============================================================================


def load_raw_yaml(config_path: Path) -> Mapping[str, object]:
    """Read a YAML configuration file and return its top-level mapping."""

    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}", details={"path": str(path)}
        )

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Configuration file '{path}' contains invalid YAML", details={"path": str(path)}
        ) from exc

    if not isinstance(data, Mapping):
        raise ConfigurationError(
            "Configuration file must contain a mapping at the root", details={"path": str(path)}
        )
    return data


def _validate(data: Mapping[str, object], *, source: str) -> EngineSettings:
    try:
        return EngineSettings.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(
            f"Invalid configuration from {source}: {problems}", details={"source": source}
        ) from exc


def load_settings(
    config_path: Optional[Union[str, Path]] = None, *, apply_env: bool = True
) -> EngineSettings:
    """Load settings from YAML (or defaults) and apply environment overrides."""

    if config_path is None:
        settings = EngineSettings()
    else:
        settings = _validate(load_raw_yaml(Path(config_path)), source=str(config_path))
    return apply_environment_overrides(settings) if apply_env else settings
