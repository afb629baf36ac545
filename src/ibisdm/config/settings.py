"""
config/settings.py - Runtime Settings

Merges config.yaml (structure/defaults) with environment variables
(IBISDM_* with "__" nesting, e.g. IBISDM_ENGINE__MAX_PLAN_STEPS=10) and a
local .env file. Environment and .env values take precedence over the
YAML. Pydantic-powered: every field is validated and typed.

  - Field validators reject bad values at parse time
  - validate_all() performs the cross-field startup checks and raises
    ConfigError listing every problem found
  - load_settings() respects IBISDM_CONFIG as a fallback when no explicit
    config_path is given
"""

from __future__ import annotations

import os
import threading as _threading
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_DEFAULT_RULE_PRIORITY = [
    "integrateGreet",
    "integrateAsk",
    "integrateAnswer",
    "accommodate",
    "integrateQuit",
]


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class EngineConfig(BaseModel):
    max_rule_firings: int = 64
    max_plan_steps: int = 32
    rule_priority: List[str] = Field(default_factory=lambda: list(_DEFAULT_RULE_PRIORITY))

    @field_validator("max_rule_firings")
    @classmethod
    def _positive_firings(cls, v: int) -> int:
        if v < 1:
            raise ValueError("engine.max_rule_firings must be >= 1")
        return v

    @field_validator("max_plan_steps")
    @classmethod
    def _positive_steps(cls, v: int) -> int:
        if v < 1:
            raise ValueError("engine.max_plan_steps must be >= 1")
        return v

    @field_validator("rule_priority")
    @classmethod
    def _non_empty_priority(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("engine.rule_priority must list at least one rule")
        return v


class DialogueConfig(BaseModel):
    domain_file: Optional[str] = None
    greet_on_start: bool = True
    input_timeout_seconds: Optional[float] = None
    end_on_terminal: bool = True
    show_state: bool = False

    @field_validator("input_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("dialogue.input_timeout_seconds must be > 0 (or null to wait forever)")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper

    @field_validator("max_file_size_mb", "backup_count")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("logging sizes and counts must be >= 0")
        return v


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="IBISDM_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    engine: EngineConfig = Field(default_factory=EngineConfig)
    dialogue: DialogueConfig = Field(default_factory=DialogueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML sections arrive as init kwargs; IBISDM_* variables win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("engine", mode="before")
    @classmethod
    def _coerce_engine(cls, v: Any) -> Any:
        return EngineConfig(**v) if isinstance(v, dict) else v

    @field_validator("dialogue", mode="before")
    @classmethod
    def _coerce_dialogue(cls, v: Any) -> Any:
        return DialogueConfig(**v) if isinstance(v, dict) else v

    @field_validator("logging", mode="before")
    @classmethod
    def _coerce_logging(cls, v: Any) -> Any:
        return LoggingConfig(**v) if isinstance(v, dict) else v

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def log_json_format(self) -> bool:
        return self.logging.json_format

    @property
    def log_console_output(self) -> bool:
        return self.logging.console_output

    @property
    def log_max_bytes(self) -> int:
        return self.logging.max_file_size_mb * 1024 * 1024

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time; this
        catches cross-field and filesystem problems they can't see.
        """
        errors: list[str] = []

        # ── Rule priority names the known rules exactly once ─────────────────
        priority = self.engine.rule_priority
        unknown = [n for n in priority if n not in _DEFAULT_RULE_PRIORITY]
        if unknown:
            errors.append(
                f"engine.rule_priority contains unknown rule(s) {unknown}. "
                f"Known rules: {_DEFAULT_RULE_PRIORITY}"
            )
        duplicates = sorted({n for n in priority if priority.count(n) > 1})
        if duplicates:
            errors.append(f"engine.rule_priority lists {duplicates} more than once.")
        missing = [n for n in _DEFAULT_RULE_PRIORITY if n not in priority]
        if missing:
            errors.append(f"engine.rule_priority is missing {missing}.")

        # ── Domain file exists ───────────────────────────────────────────────
        domain_file = self.dialogue.domain_file
        if domain_file is not None and not Path(domain_file).expanduser().is_file():
            errors.append(f"dialogue.domain_file '{domain_file}' does not exist.")

        # ── Report all errors together ───────────────────────────────────────
        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\nibisdm startup failed: {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your environment "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = _threading.Lock()

_KNOWN_SECTIONS = {"engine", "dialogue", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. IBISDM_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("IBISDM_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    global _singleton
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    instance = Settings(**init_kwargs)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading it from the default path
    on first use.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            _singleton = Settings(
                **{k: v for k, v in _load_yaml(_resolve_config_path(None)).items()
                   if k in _KNOWN_SECTIONS}
            )
    return _singleton
