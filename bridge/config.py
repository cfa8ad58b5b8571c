"""Bridge configuration with YAML support."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import Field, field_validator

from sandbox import policy

from bridge.schemas import BaseSchema
from bridge.transport import DEFAULT_MESSAGE_LIMIT


class BridgeConfig(BaseSchema):
    """Settings for the editor host, the sandbox and the TCP transport."""

    # Transport
    host: str = "127.0.0.1"
    port: int = Field(default=9080, ge=0, le=65535)
    read_timeout_s: float | None = Field(default=None, gt=0)
    max_message_bytes: int = Field(default=DEFAULT_MESSAGE_LIMIT, ge=1024)

    # Host frame loop
    frame_interval: float = Field(default=1 / 60, ge=0)
    console_max_lines: int = Field(default=1000, ge=1)

    # Script execution
    ticks_to_wait: int = Field(default=2, ge=1)
    indent_width: int = Field(default=4, ge=1)
    restricted: bool = False
    allowed_modules: list[str] = Field(default_factory=lambda: list(policy.ALLOWED_MODULES))

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


def load_config(yaml_path: str | Path) -> BridgeConfig:
    """Load bridge configuration from a YAML file.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        BridgeConfig instance

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is empty or has invalid fields
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError(f"Empty or invalid YAML file: {yaml_path}")
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {yaml_path}")

    try:
        return BridgeConfig.from_dict(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e


def save_config(config: BridgeConfig, yaml_path: str | Path) -> None:
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
