"""
Configuration management for provocation.

Loads config.yaml from $PROVOCATION_HOME (default ~/.config/provocation) and
the resource schema the raw model is validated against.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv


@dataclass
class ProvocationConfig:
    """
    Runtime configuration for one resource provider.

    Attributes:
        resource_type: Resource type name (e.g. Acme::Storage::Bucket)
        schema_path: Path to the JSON resource schema
        region: Default region for platform clients
        events_dataset: BigQuery dataset holding the event_log table
        metrics_enabled: Publish metrics to the event_log
        scrub_temp_dir: Scrub the temp directory before each invocation
        log_level: Logging level
        log_format: "structured" or "pretty"
        log_file: Optional log file path
        env_file: Optional .env file loaded into the environment
    """
    resource_type: Optional[str] = None
    schema_path: Optional[str] = None
    region: Optional[str] = None
    events_dataset: Optional[str] = None
    metrics_enabled: bool = False
    scrub_temp_dir: bool = False
    log_level: str = "INFO"
    log_format: str = "structured"
    log_file: Optional[str] = None
    env_file: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvocationConfig":
        known = {f.name for f in fields(cls)} - {"extra"}
        config = cls(**{k: v for k, v in data.items() if k in known})
        config.extra = {k: v for k, v in data.items() if k not in known}
        return config

    def get_schema_path(self) -> Optional[Path]:
        if not self.schema_path:
            return None
        return Path(self.schema_path).expanduser()

    def get_log_file_path(self) -> Optional[Path]:
        if not self.log_file:
            return None
        return Path(self.log_file).expanduser()


def get_provocation_home() -> Path:
    """Directory holding config.yaml ($PROVOCATION_HOME or ~/.config/provocation)."""
    home = os.environ.get("PROVOCATION_HOME")
    if home:
        return Path(home)
    return Path("~/.config/provocation").expanduser()


def load_config(config_path: Optional[Path] = None) -> ProvocationConfig:
    """
    Load configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to $PROVOCATION_HOME/config.yaml

    Returns:
        ProvocationConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the file is not a YAML mapping
    """
    if config_path is None:
        config_path = get_provocation_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"provocation config.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping: {config_path}")

    config = ProvocationConfig.from_dict(data)

    if config.env_file:
        load_dotenv(Path(config.env_file).expanduser())

    return config


def load_schema(path: Path) -> dict[str, Any]:
    """
    Load a JSON resource schema.

    Raises:
        FileNotFoundError: If the schema file does not exist
        ValueError: If the schema is not a JSON object
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Resource schema not found: {path}")

    with open(path, "r") as f:
        schema = json.load(f)

    if not isinstance(schema, dict):
        raise ValueError(f"Resource schema must be a JSON object: {path}")
    return schema
