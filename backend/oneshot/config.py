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
        # Load from config.yaml in current directory
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class MiniMaxConfig(BaseModel):
    """MiniMax API access.

    api_key may be left empty here and supplied via MINIMAX_API_KEY instead.
    """

    api_key: Optional[str] = None
    base_url: str = "https://api.minimax.io"
    request_timeout: float = 120.0


class ModelsConfig(BaseModel):
    """AI model identifiers."""

    script_llm: str = "MiniMax-M2.5-highspeed"
    image_gen: str = "image-01"
    video_gen: str = "MiniMax-Hailuo-02"
    ollama_host: str = "http://localhost:11434"


class PipelineConfig(BaseModel):
    """Pipeline execution parameters."""

    script_max_tokens: int = 2048
    image_aspect_ratio: str = "16:9"
    segment_duration: int = 6
    video_resolution: str = "768P"
    video_poll_interval: float = 5.0
    video_poll_max: int = 120
    invalidate_downstream: bool = False


class StorageConfig(BaseModel):
    """Project artifact storage."""

    projects_dir: Path = Path("temp")

    @field_validator("projects_dir", mode="before")
    @classmethod
    def convert_projects_dir_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:5173"]


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = "INFO"


class TracingConfig(BaseModel):
    """Datadog APM tracing for the API server.

    Tracing is also switched on whenever DD_API_KEY is set.
    """

    enabled: bool = False
    service: str = "oneshot"


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: ONESHOT_, delimiter: __)
    2. YAML file (config.yaml)
    3. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="ONESHOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    minimax: MiniMaxConfig = Field(default_factory=MiniMaxConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)

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
