from functools import lru_cache
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or invalid."""
    pass


class Settings(BaseSettings):
    """Cache defaults pulled from environment variables or .env file."""

    # Default TTL in milliseconds for cells created without an explicit one
    cache_default_ttl_ms: int = 60_000

    log_refresh_failures: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    def validate_required(self) -> list[str]:
        """Validate cache settings.

        Returns a list of error messages for invalid settings.
        """
        errors: list[str] = []
        warnings: list[str] = []

        if self.cache_default_ttl_ms < 0:
            errors.append(
                f"CACHE_DEFAULT_TTL_MS must be >= 0, got {self.cache_default_ttl_ms}"
            )
        elif self.cache_default_ttl_ms == 0:
            warnings.append(
                "CACHE_DEFAULT_TTL_MS is 0: nullable caches never expire, "
                "always-populated caches expire immediately"
            )

        for warning in warnings:
            logger.warning(f"Config warning: {warning}")

        return errors


def validate_config_on_startup(settings: Settings) -> None:
    """Validate configuration and raise if any setting is invalid."""
    errors = settings.validate_required()

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    logger.info("Configuration validated successfully")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    validate_config_on_startup(settings)
    return settings
