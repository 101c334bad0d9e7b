"""Configuration management for Workflow Studio."""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .services.generation import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    GenerationSettings,
)

ENV_PREFIX = "WORKFLOW_STUDIO_"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="Workflow Studio", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    reload: bool = Field(default=False, description="Enable auto-reload in development")
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")

    # Database settings
    database_url: str = Field(
        default="sqlite:///./workflow_studio.db",
        description="Database connection URL for results and execution history"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_structured: bool = Field(default=False, description="Emit JSON log lines")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")

    # Content generation settings
    generation_api_key: Optional[str] = Field(default=None, description="API key for the generation service")
    generation_model: str = Field(default=DEFAULT_MODEL, description="Default model for agent nodes")
    generation_timeout: float = Field(default=30.0, description="Generation request timeout in seconds")
    generation_base_url: str = Field(default=DEFAULT_BASE_URL, description="Generation API base URL")
    agent_default_temperature: float = Field(default=DEFAULT_TEMPERATURE, description="Default agent temperature")
    agent_default_max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, description="Default agent token limit")

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('generation_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate the generation timeout."""
        if v <= 0:
            raise ValueError("Generation timeout must be positive")
        return v

    @field_validator('agent_default_temperature')
    @classmethod
    def validate_temperature(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("Temperature must be between 0.0 and 1.0")
        return v

    @field_validator('agent_default_max_tokens')
    @classmethod
    def validate_max_tokens(cls, v):
        if v < 1:
            raise ValueError("Max tokens must be at least 1")
        return v

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url.startswith("sqlite")

    def generation_settings(self) -> Optional[GenerationSettings]:
        """Generation service settings, or None when no API key is configured."""
        if not self.generation_api_key:
            return None
        return GenerationSettings(
            api_key=self.generation_api_key,
            model=self.generation_model,
            timeout=self.generation_timeout,
            base_url=self.generation_base_url,
        )

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Get Uvicorn server configuration."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"{ENV_PREFIX}{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            elif type_func == list:
                return [item.strip() for item in value.split(',') if item.strip()] or default
            return type_func(value)

        return cls(
            app_name=get_env("APP_NAME", "Workflow Studio"),
            app_version=get_env("APP_VERSION", "1.0.0"),
            debug=get_env("DEBUG", False, bool),
            host=get_env("HOST", "0.0.0.0"),
            port=get_env("PORT", 8000, int),
            reload=get_env("RELOAD", False, bool),
            cors_origins=get_env("CORS_ORIGINS", ["*"], list),
            database_url=get_env("DATABASE_URL", "sqlite:///./workflow_studio.db"),
            database_echo=get_env("DATABASE_ECHO", False, bool),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=get_env("LOG_FILE", None),
            log_structured=get_env("LOG_STRUCTURED", False, bool),
            log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
            log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            generation_api_key=get_env("GENERATION_API_KEY", None),
            generation_model=get_env("GENERATION_MODEL", DEFAULT_MODEL),
            generation_timeout=get_env("GENERATION_TIMEOUT", 30.0, float),
            generation_base_url=get_env("GENERATION_BASE_URL", DEFAULT_BASE_URL),
            agent_default_temperature=get_env("AGENT_DEFAULT_TEMPERATURE", DEFAULT_TEMPERATURE, float),
            agent_default_max_tokens=get_env("AGENT_DEFAULT_MAX_TOKENS", DEFAULT_MAX_TOKENS, int),
        )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a .env file and environment variables."""
    global _config

    from dotenv import load_dotenv
    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = AppConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        debug=True,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        generation_timeout=5.0,
    )
