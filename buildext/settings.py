"""
Runtime Settings

Tunables shared by all tasks, loaded from an optional YAML file and
BUILDEXT_* environment overrides.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional

from pydantic import Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

ENV_PREFIX = "BUILDEXT_"


class Settings(BaseSettings):
    """Settings consumed by the tasks and the engine."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="forbid",
    )

    # Service poll loop: attempts x interval is the start/stop timeout
    poll_attempts: int = Field(default=60, ge=1, description="Service status checks before giving up")
    poll_interval: float = Field(default=2.0, ge=0, description="Seconds between service status checks")
    command_timeout: int = Field(default=600, ge=1, description="Timeout for external tools in seconds")
    framework_version: str = Field(default="v2.0.50727",
                                   description=".NET framework folder holding installutil.exe")
    log_level: str = Field(default="INFO", description="Log level")

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings,
                                   dotenv_settings, file_secret_settings):
        # Environment overrides values read from the settings file
        return env_settings, init_settings


def _describe(error: PydanticValidationError) -> str:
    unknown = [str(e['loc'][0]) for e in error.errors() if e['type'] == 'extra_forbidden']
    if unknown:
        return f"Unknown settings: {', '.join(sorted(unknown))}"

    details = error.errors()[0]
    name = ".".join(str(part) for part in details['loc'])
    return f"Invalid setting {name}: {details['msg']}"


def _read_file(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError("Settings file not found", config_file=str(config_path))

    with open(config_path, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", config_file=str(config_path))

    if not isinstance(data, dict):
        raise ConfigurationError("Settings file must contain a mapping", config_file=str(config_path))
    return data


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML file and the environment.

    Args:
        path: Optional YAML file with a top-level mapping of setting names

    Returns:
        Populated Settings instance

    Raises:
        ConfigurationError: If the file or a value is invalid
    """
    values = _read_file(path) if path else {}

    try:
        return Settings(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(_describe(e), config_file=path)
