"""Configuration loading: optional carbook.yaml plus environment overrides."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ValidationError
from .reminders import DEFAULT_REFRESH_SECONDS, ReminderThresholds
from .validation import check_schema, load_schema

CONFIG_FILENAME = "carbook.yaml"
DATA_DIR_ENV = "CARBOOK_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".carbook"


@dataclass
class Config:
    """Runtime settings for a tracker instance."""

    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = "WARNING"
    refresh_seconds: float = DEFAULT_REFRESH_SECONDS
    thresholds: ReminderThresholds = field(default_factory=ReminderThresholds)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "Config":
        """Build from the camelCase config mapping (already parsed YAML)."""
        check_schema(data, load_schema("config"), "configuration")
        config = cls(
            log_level=data.get("logLevel", "WARNING"),
            refresh_seconds=data.get("refreshSeconds", DEFAULT_REFRESH_SECONDS),
            thresholds=ReminderThresholds.from_options(data.get("reminders")),
        )
        if data.get("dataDir"):
            data_dir = Path(data["dataDir"]).expanduser()
            if base_dir is not None and not data_dir.is_absolute():
                data_dir = base_dir / data_dir
            config.data_dir = data_dir
        return config

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)


def load_config(
    path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> Config:
    """
    Resolve configuration.

    Precedence for the data directory: explicit data_dir argument, then the
    CARBOOK_DATA_DIR environment variable, then dataDir from the config
    file, then ~/.carbook. The config file defaults to carbook.yaml inside
    the resolved data directory and is optional unless path is given.
    """
    env_dir = os.environ.get(DATA_DIR_ENV)
    override = Path(data_dir) if data_dir else (Path(env_dir) if env_dir else None)

    if path is None:
        candidate = (override or DEFAULT_DATA_DIR) / CONFIG_FILENAME
        path = candidate if candidate.exists() else None
    elif not Path(path).exists():
        raise ValidationError(f"Config file not found: {path}")

    if path is None:
        config = Config()
    else:
        try:
            with open(path) as fp:
                data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"Config file {path} is not valid YAML: {e}") from None
        config = Config.from_dict(data, base_dir=Path(path).parent)

    if override is not None:
        config.data_dir = override
    return config
