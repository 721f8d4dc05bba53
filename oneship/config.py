from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError


class ProviderSettings(BaseModel):
    """Credentials and endpoint for one courier."""

    model_config = ConfigDict(extra="allow")

    api_key: str
    api_secret: Optional[str] = None
    api_url: Optional[str] = None


class WebhookConfig(BaseModel):
    """Settings for outbound webhook delivery."""

    timeout: float = 10.0
    headers: Dict[str, str] = Field(default_factory=dict)


class RepositoryConfig(BaseModel):
    """Execution repository settings."""

    backend: Literal["inmemory"] = "inmemory"


class OneShipConfig(BaseModel):
    """Top-level configuration model."""

    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)


def load_config(path: Optional[str] = None) -> OneShipConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ONESHIP_CONFIG env
            variable or 'oneship.yaml' in the current directory.
    """

    config_path = path or os.getenv("ONESHIP_CONFIG", "oneship.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data: Any = yaml.safe_load(f) or {}
        try:
            config = OneShipConfig(**data)
        except (TypeError, ValidationError) as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
    else:
        config = OneShipConfig()

    env_timeout = os.getenv("ONESHIP_WEBHOOK_TIMEOUT")
    if env_timeout:
        try:
            config.webhook.timeout = float(env_timeout)
        except ValueError as e:
            raise ConfigurationError(
                f"ONESHIP_WEBHOOK_TIMEOUT must be a number, got {env_timeout!r}"
            ) from e
    return config
