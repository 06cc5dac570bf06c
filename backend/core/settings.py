"""
Centralized application settings using Pydantic BaseSettings.

This module provides type-safe access to environment variables with validation.
All settings are loaded once at application startup.
"""

import sys
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _get_work_dir() -> Path:
    """Get the working directory for user data (.env)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path(__file__).parent.parent.parent


# ============================================================================
# Application Constants
# ============================================================================

# Default request timeout for provider profiles (milliseconds)
DEFAULT_PROVIDER_TIMEOUT_MS = 30000

# Default rate limit for provider profiles (0 = unlimited)
DEFAULT_RATE_LIMIT_RPM = 0

# Provider name used when nothing else matches a model id
DEFAULT_PROVIDER_NAME = "claude"


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and are validated on startup.
    """

    # Debug / logging configuration
    debug: bool = False
    log_json: bool = False

    # Default SDK provider configuration
    claude_model: str = "claude-opus-4-5-20251101"
    claude_permission_mode: str = "default"
    claude_cli_path: Optional[str] = None
    default_max_turns: int = 20

    # Proxy profile configuration
    provider_timeout_ms: int = DEFAULT_PROVIDER_TIMEOUT_MS
    openai_max_tokens: int = 4096
    error_body_max_chars: int = 500  # Upstream error bodies are truncated to this length

    # Environment variables forwarded to the SDK subprocess for proxy profiles
    proxy_env_allowlist: str = "PATH,HOME,SHELL,TERM,USER,LANG,LC_ALL"

    # Tools enabled for anthropic-compatible proxies when the caller doesn't restrict them
    proxy_default_tools: str = "Read,Write,Edit,Glob,Grep,Bash,WebSearch,WebFetch"

    # Bounded queue size for streamed events
    event_channel_size: int = 100

    # Server binding
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS configuration
    frontend_url: Optional[str] = None

    @field_validator("debug", mode="before")
    @classmethod
    def validate_debug(cls, v: Optional[str]) -> bool:
        """Parse debug from string to bool."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return False

    @field_validator("log_json", mode="before")
    @classmethod
    def validate_log_json(cls, v: Optional[str]) -> bool:
        """Parse log_json from string to bool."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return False

    def get_proxy_env_allowlist(self) -> List[str]:
        """
        Get the environment variable names passed through to proxy SDK sessions.

        Returns:
            List of environment variable names
        """
        return _split_csv(self.proxy_env_allowlist)

    def get_proxy_default_tools(self) -> List[str]:
        """
        Get the default tool list for anthropic-compatible proxy sessions.

        Returns:
            List of tool names
        """
        return _split_csv(self.proxy_default_tools)

    @property
    def work_dir(self) -> Path:
        """
        Get the working directory for user data (.env).

        Returns:
            Path to the working directory
        """
        return _get_work_dir()

    def get_cors_origins(self) -> List[str]:
        """
        Get the list of allowed CORS origins.

        Returns:
            List of allowed origin URLs
        """
        origins = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
        if self.frontend_url:
            origins.append(self.frontend_url)
        return origins

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow extra fields for forward compatibility
        extra = "ignore"


# Singleton instance - load settings once
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        # Find .env file in work directory
        env_path = _settings.work_dir / ".env"
        if env_path.exists():
            _settings = Settings(_env_file=str(env_path))

    return _settings


def reset_settings() -> None:
    """
    Reset the settings singleton (useful for testing).
    """
    global _settings
    _settings = None
