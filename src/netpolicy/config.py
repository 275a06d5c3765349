"""
Engine configuration for netpolicy.

A small YAML file that tells an embedding process where its ruleset lives,
which state to start in and how chatty to be:

    ruleset_path: /etc/netpolicy/rules.yaml
    initial_state: NORMAL
    log_level: INFO
    log_decisions: true
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from netpolicy.errors import ConfigError
from netpolicy.log import LOG_LEVELS
from netpolicy.schema import State


class EngineConfig(BaseModel):
    """
    Settings for a PolicyEngine.

    Attributes:
        ruleset_path: Ruleset file to load at startup (optional)
        initial_state: State the engine starts in
        log_level: Level for the netpolicy logger
        log_decisions: Log every decision at INFO instead of DEBUG
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ruleset_path: Path | None = Field(
        default=None,
        description="Ruleset file to load at startup",
    )
    initial_state: State = Field(
        default=State.NORMAL,
        description="State the engine starts in",
    )
    log_level: str = Field(
        default="WARNING",
        description="Level for the netpolicy logger",
    )
    log_decisions: bool = Field(
        default=False,
        description="Log every decision at INFO",
    )

    @field_validator("initial_state", mode="before")
    @classmethod
    def normalize_state(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            msg = f"log_level must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return level


def load_config(path: Path | str) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    A relative ruleset_path is resolved against the config file's directory.

    Raises:
        ConfigError: If the file cannot be read or does not match the schema
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(path=str(path), underlying_error=str(e)) from e

    config = load_config_from_string(text, source=str(path))
    if config.ruleset_path is not None and not config.ruleset_path.is_absolute():
        config = config.model_copy(
            update={"ruleset_path": path.parent / config.ruleset_path}
        )
    return config


def load_config_from_string(text: str, source: str = "<string>") -> EngineConfig:
    """Load engine configuration from a YAML string."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(path=source, underlying_error=str(e)) from e

    if data is None:
        data = {}
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path=source, underlying_error=str(e)) from e
