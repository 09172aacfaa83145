from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONFIG_PATH = "stepflow.yaml"


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(populate_by_name=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    # ``json`` in the config file
    json_output: bool = Field(default=False, alias="json")


class DiscoveryConfig(BaseModel):
    """Entry point groups scanned for plugin step and parameter types."""

    enabled: bool = True
    step_types_group: str = "stepflow.step_types"
    parameter_types_group: str = "stepflow.parameter_types"


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    logging: LoggingConfig = LoggingConfig()
    discovery: DiscoveryConfig = DiscoveryConfig()


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'stepflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("STEPFLOW_CONFIG", DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_db_url = os.getenv("STEPFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
