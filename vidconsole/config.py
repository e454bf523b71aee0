"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class ServiceConfig(BaseModel):
    """Remote engine endpoint and request timeouts.

    short_timeout bounds metadata, status and search calls; long_timeout
    bounds generation-class calls (mining, scripting, TTS, asset fetch and
    download, rendering) that can take minutes.
    """

    base_url: str = "http://localhost:8000/api"
    short_timeout: float = 30.0
    long_timeout: float = 300.0

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class PollingConfig(BaseModel):
    """Session status polling parameters."""

    interval: float = 2.0
    # 0 keeps the stop-on-first-failure behaviour
    transport_retries: int = Field(default=0, ge=0)


class WorkflowConfig(BaseModel):
    """Manual-mode stepper behaviour."""

    auto_advance: bool = True
    advance_delay: float = 0.5


class AssetsConfig(BaseModel):
    """Stock footage source selection and per-keyword task limits."""

    default_source: str = "pexels"
    sources: list[str] = [
        "pexels",
        "pixabay",
        "youtube",
        "nasa",
        "wikimedia",
        "internet_archive",
    ]
    max_concurrency: Optional[int] = Field(default=None, ge=1)


class ServerConfig(BaseModel):
    """Local control API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: list[str] = ["http://localhost:5173"]


class LoggingConfig(BaseModel):
    """Log level for the console and the control API."""

    level: str = "INFO"


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: VIDCONSOLE_, delimiter: __)
    2. YAML file (config.yaml)
    3. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="VIDCONSOLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service: ServiceConfig = ServiceConfig()
    polling: PollingConfig = PollingConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    assets: AssetsConfig = AssetsConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. YAML file
        3. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
