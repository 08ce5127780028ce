"""Configuration management for Reader Sync."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, validator
from pydantic import ConfigDict, model_validator

from .utils.paths import get_config_file_path

PASSWORD_ENV = "READER_SYNC_PASSWORD"


class ServerConfig(BaseModel):
    """Connection settings for the remote reader service."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = "https://www.inoreader.com"
    username: str = ""
    password: str = ""
    client_name: str = Field(default="ReaderSync", description="Client id sent with every request")

    @model_validator(mode="before")
    @classmethod
    def _apply_legacy_aliases(cls, data: Any) -> Any:
        """Support ``host`` in place of ``base_url``."""
        if not isinstance(data, dict):
            return data

        data = data.copy()
        host = data.pop("host", None)
        if host and not data.get("base_url"):
            data["base_url"] = host if "://" in host else f"https://{host}"

        return data

    @validator('base_url')
    def normalize_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")

    def resolved_password(self) -> str:
        """Password from the config, falling back to the environment."""
        return self.password or os.environ.get(PASSWORD_ENV, "")


class Config(BaseModel):
    """Main configuration for Reader Sync."""

    model_config = ConfigDict(extra="ignore")

    server: ServerConfig = Field(default_factory=ServerConfig)
    session_refresh_interval: int = Field(default=6 * 3600, description="Seconds between session token refreshes")
    action_token_ttl: int = Field(default=25 * 60, description="Seconds an action token is trusted")
    article_limit: int = Field(default=100, description="Maximum articles requested per feed refresh")
    max_concurrent_requests: int = Field(default=4, description="Simultaneous HTTP requests")
    request_timeout: int = Field(default=30, description="Transport timeout in seconds")
    retry_attempts: int = Field(default=3, description="Transport retries for 429/5xx answers")
    log_level: str = Field(default="INFO", description="Logging level")

    @validator('session_refresh_interval', 'action_token_ttl', 'article_limit',
               'max_concurrent_requests', 'request_timeout')
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()


def load_config(config_file: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_file: Optional path to config file. If None, uses default path.

    Returns:
        Config object
    """
    if config_file is None:
        config_file = get_config_file_path()

    if not config_file.exists():
        # Create default config
        config = Config()
        save_config(config, config_file)
        logging.info(f"Created default config at {config_file}")
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        config = Config(**data)
        logging.debug(f"Loaded config from {config_file}")
        return config

    except (yaml.YAMLError, ValueError) as e:
        logging.error(f"Error loading config from {config_file}: {e}")
        raise


def save_config(config: Config, config_file: Optional[Path] = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_file: Optional path to config file. If None, uses default path.
    """
    if config_file is None:
        config_file = get_config_file_path()

    config_file.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(config.model_dump(), f, default_flow_style=False, indent=2)

        logging.debug(f"Saved config to {config_file}")

    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Error saving config to {config_file}: {e}")
        raise


def create_example_config() -> str:
    """Create an example configuration YAML string."""
    example_config = Config(
        server=ServerConfig(
            base_url="https://freshrss.example.com/api/greader.php",
            username="reader",
            password="",
        ),
        article_limit=100,
        log_level="INFO"
    )

    return yaml.dump(example_config.model_dump(), default_flow_style=False, indent=2)
