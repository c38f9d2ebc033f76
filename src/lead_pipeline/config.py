"""Lead pipeline configuration module.

This module provides centralized configuration management for the lead
enrichment and scoring pipeline, loading settings from environment variables.

Configuration is loaded from:
1. .env file (if present)
2. Environment variables

Provider API keys are optional. A missing key disables the matching
enrichment or validation step instead of failing the request, except where
a pipeline function cannot run without it.

Usage:
    >>> from lead_pipeline.config import config
    >>> config.has_apollo
    True
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: PostgreSQL connection string.
        APOLLO_API_KEY: Apollo.io key for company and people search.
        HUNTER_API_KEY: Hunter.io key for email discovery.
        PDL_API_KEY: People Data Labs key for person enrichment.
        CLEARBIT_API_KEY: Clearbit key for company lookup.
        ZEROBOUNCE_API_KEY: ZeroBounce key for email verification.
        TWILIO_ACCOUNT_SID: Twilio account SID for phone lookups.
        TWILIO_AUTH_TOKEN: Twilio auth token.
        FIRECRAWL_API_KEY: Firecrawl key for website scraping.
        LLM_API_KEY: Key for the OpenAI-compatible LLM gateway.
        LLM_BASE_URL: Base URL of the LLM gateway.
        JWT_SECRET: Secret used to verify user bearer tokens.
        SERVICE_ROLE_KEY: Key accepted as a bearer token for server-to-server calls.
        CRON_SECRET: Shared secret for scheduled invocations.
    """

    def __init__(self) -> None:
        """Initialize configuration by loading from environment variables."""

        # Application environment
        self.APP_ENV = self._get_optional("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # Database Configuration
        self.DATABASE_URL = self._get_optional("DATABASE_URL")
        self.DATABASE_POOL_SIZE = int(self._get_optional("DATABASE_POOL_SIZE", "5"))
        self.DATABASE_MAX_OVERFLOW = int(
            self._get_optional("DATABASE_MAX_OVERFLOW", "10")
        )

        # Enrichment providers
        self.APOLLO_API_KEY = self._get_optional("APOLLO_API_KEY")
        self.HUNTER_API_KEY = self._get_optional("HUNTER_API_KEY")
        self.PDL_API_KEY = self._get_optional("PDL_API_KEY")
        self.CLEARBIT_API_KEY = self._get_optional("CLEARBIT_API_KEY")

        # Validation providers
        self.ZEROBOUNCE_API_KEY = self._get_optional("ZEROBOUNCE_API_KEY")
        self.TWILIO_ACCOUNT_SID = self._get_optional("TWILIO_ACCOUNT_SID")
        self.TWILIO_AUTH_TOKEN = self._get_optional("TWILIO_AUTH_TOKEN")

        # Firecrawl Configuration
        self.FIRECRAWL_API_KEY = self._get_optional("FIRECRAWL_API_KEY")
        self.FIRECRAWL_TIMEOUT_MS = int(
            self._get_optional("FIRECRAWL_TIMEOUT_MS", "60000")
        )

        # LLM gateway (OpenAI-compatible)
        self.LLM_API_KEY = self._get_optional("LLM_API_KEY")
        self.LLM_BASE_URL = self._get_optional(
            "LLM_BASE_URL", "https://ai.gateway.lovable.dev/v1"
        )
        self.LLM_DESCRIPTION_MODEL = self._get_optional(
            "LLM_DESCRIPTION_MODEL", "google/gemini-3-flash-preview"
        )
        self.LLM_SCORING_MODEL = self._get_optional(
            "LLM_SCORING_MODEL", "google/gemini-2.5-flash"
        )

        # Auth Configuration
        self.JWT_SECRET = self._get_optional("JWT_SECRET")
        self.JWT_AUDIENCE = self._get_optional("JWT_AUDIENCE")
        self.SERVICE_ROLE_KEY = self._get_optional("SERVICE_ROLE_KEY")
        self.CRON_SECRET = self._get_optional("CRON_SECRET")

        # API Server Configuration
        self.API_HOST = self._get_optional("API_HOST", "0.0.0.0")
        self.API_PORT = int(self._get_optional("API_PORT", "8080"))
        self.CORS_ORIGINS = [
            origin.strip()
            for origin in self._get_optional("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]

        # Outbound HTTP
        self.HTTP_TIMEOUT_SECONDS = float(
            self._get_optional("HTTP_TIMEOUT_SECONDS", "30")
        )
        self.RETRY_MAX_ATTEMPTS = int(self._get_optional("RETRY_MAX_ATTEMPTS", "3"))
        self.RETRY_DELAY_SECONDS = float(
            self._get_optional("RETRY_DELAY_SECONDS", "1.0")
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
        """Return True if the variable is set to 'true' or '1'."""
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    @property
    def has_apollo(self) -> bool:
        return bool(self.APOLLO_API_KEY)

    @property
    def has_hunter(self) -> bool:
        return bool(self.HUNTER_API_KEY)

    @property
    def has_pdl(self) -> bool:
        return bool(self.PDL_API_KEY)

    @property
    def has_clearbit(self) -> bool:
        return bool(self.CLEARBIT_API_KEY)

    @property
    def has_zerobounce(self) -> bool:
        return bool(self.ZEROBOUNCE_API_KEY)

    @property
    def has_twilio(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN)

    @property
    def has_firecrawl(self) -> bool:
        return bool(self.FIRECRAWL_API_KEY)

    @property
    def has_llm(self) -> bool:
        return bool(self.LLM_API_KEY)

    def enrichment_providers(self) -> list[str]:
        """List the enrichment providers that have credentials configured.

        Returns:
            Provider names in waterfall order.
        """
        available = []
        if self.has_apollo:
            available.append("apollo")
        if self.has_hunter:
            available.append("hunter")
        if self.has_pdl:
            available.append("pdl")
        if self.has_clearbit:
            available.append("clearbit")
        return available

    def validate_for_api(self) -> None:
        """Validate configuration required to serve the HTTP API.

        Raises:
            ConfigError: If token verification cannot be performed.
        """
        if not self.JWT_SECRET:
            raise ConfigError("JWT_SECRET is required to authenticate API requests")

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


# Create global singleton instance
config = Config()
