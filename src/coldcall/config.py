"""Cold-call service configuration module.

This module provides centralized configuration management for the cold-call
automation service, loading settings from environment variables with validation.

Configuration is loaded from:
1. .env file (if present)
2. Environment variables

All API keys and sensitive configuration should be provided via environment
variables, never hardcoded.

Usage:
    >>> from coldcall.config import config
    >>> print(config.VAPI_BASE_URL)
    https://api.vapi.ai
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


class Config:
    """Application configuration class that loads settings from environment variables.

    Loads and validates all configuration for the cold-call service, including
    API keys for the external vendors (OpenAI, browser automation, Google Places,
    Yelp, Vapi), database connection settings, and service tuning knobs.

    Attributes:
        OPENAI_API_KEY: OpenAI API key for classification, scoring and scripts.
        BROWSER_USE_API_KEY: Browser-automation task runner API key.
        GOOGLE_MAPS_API_KEY: Google Places API key for lead discovery.
        YELP_API_KEY: Yelp Fusion API key for lead discovery.
        VAPI_API_KEY: Vapi voice-call API key.
        VAPI_BASE_URL: Vapi REST base URL.
        VAPI_WEBHOOK_SECRET: Webhook signing secret (read, not verified).
        DATABASE_URL: PostgreSQL connection string.

    Example:
        >>> config = Config()
        >>> print(config.APP_ENV)
        dev
    """

    def __init__(self) -> None:
        """Initialize configuration by loading from environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_optional("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # OpenAI Configuration
        self.OPENAI_API_KEY = self._get_optional("OPENAI_API_KEY")
        self.OPENAI_MODEL = self._get_optional("OPENAI_MODEL", "gpt-4o")
        self.OPENAI_SCORING_MODEL = self._get_optional(
            "OPENAI_SCORING_MODEL", "gpt-4o-mini"
        )
        self.OPENAI_TIMEOUT_SECONDS = float(
            self._get_optional("OPENAI_TIMEOUT_SECONDS", "60")
        )

        # Browser automation Configuration
        self.BROWSER_USE_API_KEY = self._get_optional("BROWSER_USE_API_KEY")
        self.BROWSER_USE_BASE_URL = self._get_optional(
            "BROWSER_USE_BASE_URL", "https://api.browser-use.com/api/v1"
        )
        self.BROWSER_USE_LLM = self._get_optional("BROWSER_USE_LLM", "gemini-2.5-flash")
        self.BROWSER_USE_TIMEOUT_SECONDS = int(
            self._get_optional("BROWSER_USE_TIMEOUT_SECONDS", "300")
        )

        # Places / search Configuration
        self.GOOGLE_MAPS_API_KEY = self._get_optional("GOOGLE_MAPS_API_KEY")
        self.YELP_API_KEY = self._get_optional("YELP_API_KEY")
        self.DISCOVERY_MAX_RESULTS = int(
            self._get_optional("DISCOVERY_MAX_RESULTS", "50")
        )
        self.DISCOVERY_ITERATIONS = int(self._get_optional("DISCOVERY_ITERATIONS", "10"))

        # Vapi Configuration
        self.VAPI_API_KEY = self._get_optional("VAPI_API_KEY")
        self.VAPI_BASE_URL = self._get_optional("VAPI_BASE_URL", "https://api.vapi.ai")
        self.VAPI_WEBHOOK_SECRET = self._get_optional("VAPI_WEBHOOK_SECRET")
        self.VAPI_PHONE_NUMBER_ID = self._get_optional("VAPI_PHONE_NUMBER_ID")
        self.VAPI_TIMEOUT_SECONDS = int(self._get_optional("VAPI_TIMEOUT_SECONDS", "30"))

        # Database Configuration
        self.DATABASE_URL = self._get_optional("DATABASE_URL")
        self.DATABASE_POOL_SIZE = int(self._get_optional("DATABASE_POOL_SIZE", "5"))
        self.DATABASE_MAX_OVERFLOW = int(
            self._get_optional("DATABASE_MAX_OVERFLOW", "10")
        )

        # API Server Configuration
        self.API_HOST = self._get_optional("API_HOST", "0.0.0.0")
        self.API_PORT = int(self._get_optional("API_PORT", "3001"))

        # Calling Configuration
        self.CALL_COST_PER_MINUTE = float(
            self._get_optional("CALL_COST_PER_MINUTE", "0.05")
        )
        self.CALL_PLACEMENT_DELAY_SECONDS = float(
            self._get_optional("CALL_PLACEMENT_DELAY_SECONDS", "1.0")
        )

    def _get_required(self, name: str, default: Optional[str] = None) -> str:
        """Get a required configuration value from environment variables.

        Args:
            name: The name of the environment variable.
            default: Optional default value if not found.

        Returns:
            The value of the environment variable or default if provided.

        Raises:
            ConfigError: If the environment variable is not found and no default provided.
        """
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            self.logger.warning(
                "Environment variable %s not found, using default value", name
            )
            return default
        raise ConfigError(
            f"Required environment variable {name} not found and no default provided"
        )

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables.

        Args:
            name: The name of the environment variable.
            default: Default value if not found (default: "").

        Returns:
            The value of the environment variable or the default value.
        """
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """Get a boolean configuration value from environment variables.

        Args:
            name: The name of the environment variable.

        Returns:
            True if the environment variable exists and is set to 'true' or '1'.
        """
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def validate_for_discovery(self) -> None:
        """Validate configuration required for streaming lead discovery.

        Raises:
            ConfigError: If required discovery configuration is missing.
        """
        if not self.OPENAI_API_KEY:
            raise ConfigError("OPENAI_API_KEY is required for lead discovery")
        if not self.BROWSER_USE_API_KEY:
            raise ConfigError("BROWSER_USE_API_KEY is required for lead discovery")

    def validate_for_calling(self) -> None:
        """Validate configuration required for placing calls.

        Raises:
            ConfigError: If required calling configuration is missing.
        """
        if not self.VAPI_API_KEY:
            raise ConfigError("VAPI_API_KEY is required for placing calls")

    def validate_for_database(self) -> None:
        """Validate configuration required for database operations.

        Raises:
            ConfigError: If required database configuration is missing.
        """
        if not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is required for database operations")

    def get_database_connection_args(self) -> dict:
        """Get database connection arguments for SQLAlchemy.

        Returns:
            Dictionary of connection arguments.
        """
        return {
            "pool_size": self.DATABASE_POOL_SIZE,
            "max_overflow": self.DATABASE_MAX_OVERFLOW,
            "pool_pre_ping": True,
        }

    def provider_keys_configured(self) -> dict[str, bool]:
        """Report which vendor credentials are present."""
        return {
            "google": bool(self.GOOGLE_MAPS_API_KEY),
            "yelp": bool(self.YELP_API_KEY),
            "browseruse": bool(self.BROWSER_USE_API_KEY),
            "vapi": bool(self.VAPI_API_KEY),
            "openai": bool(self.OPENAI_API_KEY),
        }

    def is_production(self) -> bool:
        """Check if running in production environment.

        Returns:
            True if APP_ENV is 'prod' or 'production'.
        """
        return self.APP_ENV.lower() in ["prod", "production"]

    def is_development(self) -> bool:
        """Check if running in development environment.

        Returns:
            True if APP_ENV is 'dev' or 'development'.
        """
        return self.APP_ENV.lower() in ["dev", "development"]

    def get_log_level(self) -> int:
        """Get logging level as integer.

        Returns:
            Logging level constant (e.g., logging.INFO).
        """
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return level_map.get(self.LOG_LEVEL.upper(), logging.INFO)


# Create global singleton instance
config = Config()
