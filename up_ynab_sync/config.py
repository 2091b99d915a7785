"""
up-ynab-sync - Configuration Management

Centralized configuration for API credentials, webhook secrets and sync tuning.
This module ensures:
- No hardcoded secrets
- No missing required variables
- Environment-specific settings (dev/staging/prod)
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== YNAB ====================
    YNAB_TOKEN: str = Field(
        default="",
        description="YNAB personal access token (required)"
    )
    YNAB_BUDGET: str = Field(
        default="",
        description="YNAB budget id that receives the transactions (required)"
    )

    # ==================== UP BANK ====================
    UP_PRIMARY_TOKEN: str = Field(default="", description="Up API token for the primary connection")
    UP_PRIMARY_WEBHOOK: str = Field(default="", description="Webhook secret for the primary connection")
    UP_SECONDARY_TOKEN: str = Field(default="", description="Up API token for the secondary connection")
    UP_SECONDARY_WEBHOOK: str = Field(default="", description="Webhook secret for the secondary connection")
    WEBHOOK_URL: str = Field(
        default="",
        description="Public URL of the webhook endpoint, used when registering Up webhooks"
    )

    # ==================== SYNC ====================
    SYNC_TIMEZONE: str = Field(
        default="Australia/Melbourne",
        description="Timezone used for YNAB dates and memo times"
    )
    SYNC_WINDOW_DAYS: int = Field(
        default=4,
        description="Days of YNAB transactions mirrored on a cold cache"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Timeout for calls to the Up and YNAB APIs"
    )

    # ==================== OBSERVABILITY ====================
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    # ==================== API ====================
    API_TITLE: str = Field(default="Up to YNAB Sync", description="API title for OpenAPI docs")
    API_VERSION: str = Field(default="1.0.0", description="API version")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    def webhook_secret_variable(self, connection: str) -> str:
        """Name of the environment variable holding a connection's webhook secret."""
        return f"UP_{connection.upper()}_WEBHOOK"

    def up_credentials(self, connection: str) -> tuple:
        """(token, webhook secret) for the ``primary`` or ``secondary`` connection."""
        if connection == "primary":
            return self.UP_PRIMARY_TOKEN, self.UP_PRIMARY_WEBHOOK
        if connection == "secondary":
            return self.UP_SECONDARY_TOKEN, self.UP_SECONDARY_WEBHOOK
        raise ValueError(f"Unknown connection: {connection}")

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for production deployment.
        Returns list of validation errors.
        """
        errors = []

        if not self.YNAB_TOKEN:
            errors.append("YNAB_TOKEN is required")
        if not self.YNAB_BUDGET:
            errors.append("YNAB_BUDGET is required")
        if not self.UP_PRIMARY_TOKEN:
            errors.append("UP_PRIMARY_TOKEN is required")
        if self.SYNC_WINDOW_DAYS < 0:
            errors.append("SYNC_WINDOW_DAYS cannot be negative")

        if self.is_production and self.DEBUG:
            errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")

    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment(settings: Optional[Settings] = None) -> dict:
    """
    Validate all required environment variables.

    Returns a status dict with validation results.
    """
    settings = settings or get_settings()

    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
        "variables": {}
    }

    required_vars = [
        ("YNAB_TOKEN", settings.YNAB_TOKEN),
        ("YNAB_BUDGET", settings.YNAB_BUDGET),
        ("UP_PRIMARY_TOKEN", settings.UP_PRIMARY_TOKEN),
    ]

    for name, value in required_vars:
        if not value:
            status["errors"].append(f"{name} is not set")
            status["valid"] = False
        else:
            status["variables"][name] = "✓ Set"

    optional_vars = [
        ("UP_PRIMARY_WEBHOOK", settings.UP_PRIMARY_WEBHOOK, "Primary webhooks will be rejected until a secret is set"),
        ("UP_SECONDARY_TOKEN", settings.UP_SECONDARY_TOKEN, "Secondary connection disabled"),
        ("UP_SECONDARY_WEBHOOK", settings.UP_SECONDARY_WEBHOOK, "Secondary webhooks will be rejected until a secret is set"),
        ("WEBHOOK_URL", settings.WEBHOOK_URL, "Webhook provisioning disabled"),
        ("SENTRY_DSN", settings.SENTRY_DSN, "Error tracking disabled"),
    ]

    for name, value, warning in optional_vars:
        if not value:
            status["warnings"].append(warning)
            status["variables"][name] = "⚠ Not set"
        else:
            status["variables"][name] = "✓ Set"

    if settings.SYNC_WINDOW_DAYS < 0:
        status["errors"].append("SYNC_WINDOW_DAYS cannot be negative")
        status["valid"] = False

    return status
