"""Configuration validation for startup checks.

Validates that required configuration is present and sane before the
application starts accepting erasure requests.

Usage:
    from webq.config.validation import validate_or_raise

    # During startup
    validate_or_raise(settings)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from webq.config.settings import ErasureConfig, LockBackend, Settings, StorageBackend, get_settings
from webq.utils.exceptions import ConfigurationError

logger = logging.getLogger("webq.config")

_DEFAULT_ERASURE_SECRET = ErasureConfig().secret_key.get_secret_value()


class ValidationSeverity(str, Enum):
    """Severity of configuration validation issues."""

    ERROR = "error"  # Must be fixed, app cannot start
    WARNING = "warning"  # Should be fixed, app can start but may have issues


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""

    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == ValidationSeverity.ERROR else "WARNING"
        result = f"[{prefix}] {self.field}: {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Validate application configuration.

    Args:
        settings: Settings to validate (default: global settings)

    Returns:
        List of validation results (empty if all checks pass)
    """
    if settings is None:
        settings = get_settings()

    results: list[ValidationResult] = []

    results.extend(_validate_database(settings))
    results.extend(_validate_security(settings))
    results.extend(_validate_redis(settings))
    results.extend(_validate_storage(settings))
    results.extend(_validate_erasure(settings))
    results.extend(_validate_environment(settings))

    return results


def validate_or_raise(settings: Settings | None = None) -> None:
    """Validate configuration and raise if errors found.

    Raises:
        ConfigurationError: If any validation errors are found
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]

    if errors:
        error_messages = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{error_messages}")

    for warning in (r for r in results if r.severity == ValidationSeverity.WARNING):
        logger.warning(str(warning))


# =============================================================================
# Validators
# =============================================================================


def _validate_database(settings: Settings) -> list[ValidationResult]:
    """Validate database configuration."""
    results: list[ValidationResult] = []

    if not settings.DATABASE_URL:
        results.append(
            ValidationResult(
                field="DATABASE_URL",
                severity=ValidationSeverity.ERROR,
                message="Database URL is not configured",
                suggestion="Set DATABASE_URL environment variable",
            )
        )
    elif not settings.DATABASE_URL.startswith(("postgresql", "sqlite")):
        results.append(
            ValidationResult(
                field="DATABASE_URL",
                severity=ValidationSeverity.WARNING,
                message=f"Unexpected database type in URL: {settings.DATABASE_URL[:20]}...",
                suggestion="WebQ is designed for PostgreSQL or SQLite",
            )
        )

    if settings.DATABASE_POOL_SIZE > 100:
        results.append(
            ValidationResult(
                field="DATABASE_POOL_SIZE",
                severity=ValidationSeverity.WARNING,
                message=f"Pool size {settings.DATABASE_POOL_SIZE} may be excessive",
                suggestion="Consider reducing to prevent database connection exhaustion",
            )
        )

    return results


def _validate_security(settings: Settings) -> list[ValidationResult]:
    """Validate operator and erasure secrets."""
    results: list[ValidationResult] = []
    erasure_secret = settings.erasure.secret_key.get_secret_value()

    if settings.ENVIRONMENT == "production":
        if settings.API_SECRET_KEY is None:
            results.append(
                ValidationResult(
                    field="API_SECRET_KEY",
                    severity=ValidationSeverity.ERROR,
                    message="API secret key is required in production",
                    suggestion="Operator endpoints are unreachable without it",
                )
            )
        if erasure_secret == _DEFAULT_ERASURE_SECRET:
            results.append(
                ValidationResult(
                    field="ERASURE__SECRET_KEY",
                    severity=ValidationSeverity.ERROR,
                    message="Erasure secret key still has the development default",
                    suggestion="Set ERASURE__SECRET_KEY to a long random string",
                )
            )
    elif erasure_secret == _DEFAULT_ERASURE_SECRET:
        results.append(
            ValidationResult(
                field="ERASURE__SECRET_KEY",
                severity=ValidationSeverity.WARNING,
                message="Using the development erasure secret",
                suggestion="Set ERASURE__SECRET_KEY outside local development",
            )
        )

    if settings.API_SECRET_KEY is not None:
        if len(settings.API_SECRET_KEY.get_secret_value()) < 32:
            results.append(
                ValidationResult(
                    field="API_SECRET_KEY",
                    severity=ValidationSeverity.WARNING,
                    message="API secret key is short and may be weak",
                    suggestion="Use at least 32 characters for secure API keys",
                )
            )

    return results


def _validate_redis(settings: Settings) -> list[ValidationResult]:
    """Validate Redis configuration when Redis holds execution locks."""
    results: list[ValidationResult] = []

    if settings.erasure.lock_backend != LockBackend.REDIS:
        return results

    if not settings.REDIS_URL:
        results.append(
            ValidationResult(
                field="REDIS_URL",
                severity=ValidationSeverity.ERROR,
                message="Redis lock backend selected but REDIS_URL is empty",
                suggestion="Set REDIS_URL or use ERASURE__LOCK_BACKEND=database",
            )
        )
    elif not settings.REDIS_URL.startswith(("redis://", "rediss://")):
        results.append(
            ValidationResult(
                field="REDIS_URL",
                severity=ValidationSeverity.WARNING,
                message="Redis URL has unexpected format",
                suggestion="Expected format: redis://host:port/db",
            )
        )

    return results


def _validate_storage(settings: Settings) -> list[ValidationResult]:
    """Validate object storage configuration."""
    results: list[ValidationResult] = []

    if settings.STORAGE_BACKEND == StorageBackend.MEMORY and settings.ENVIRONMENT in (
        "staging",
        "production",
    ):
        results.append(
            ValidationResult(
                field="STORAGE_BACKEND",
                severity=ValidationSeverity.ERROR,
                message="In-memory object storage cannot erase real files",
                suggestion="Use STORAGE_BACKEND=s3",
            )
        )

    return results


def _validate_erasure(settings: Settings) -> list[ValidationResult]:
    """Validate erasure policy values."""
    results: list[ValidationResult] = []
    erasure = settings.erasure

    if erasure.code_ttl_seconds <= 0:
        results.append(
            ValidationResult(
                field="ERASURE__CODE_TTL_SECONDS",
                severity=ValidationSeverity.ERROR,
                message="Verification codes must have a positive lifetime",
            )
        )

    if erasure.code_bytes < 16:
        results.append(
            ValidationResult(
                field="ERASURE__CODE_BYTES",
                severity=ValidationSeverity.WARNING,
                message=f"{erasure.code_bytes} bytes of code entropy is low",
                suggestion="Use at least 16 bytes",
            )
        )

    if erasure.challenge_max_attempts < 1 or erasure.challenge_lockout_seconds <= 0:
        results.append(
            ValidationResult(
                field="ERASURE__CHALLENGE_MAX_ATTEMPTS",
                severity=ValidationSeverity.ERROR,
                message="Challenge lockout requires at least one attempt and a positive duration",
            )
        )

    if erasure.challenge_operand_max < 1:
        results.append(
            ValidationResult(
                field="ERASURE__CHALLENGE_OPERAND_MAX",
                severity=ValidationSeverity.ERROR,
                message="Challenge operands must allow at least 1",
            )
        )

    if erasure.lock_ttl_seconds < erasure.execution_timeout_seconds:
        results.append(
            ValidationResult(
                field="ERASURE__LOCK_TTL_SECONDS",
                severity=ValidationSeverity.WARNING,
                message="Lock can expire while an execution is still running",
                suggestion="Keep lock_ttl_seconds above execution_timeout_seconds",
            )
        )

    return results


def _validate_environment(settings: Settings) -> list[ValidationResult]:
    """Validate environment-specific settings."""
    results: list[ValidationResult] = []

    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        results.append(
            ValidationResult(
                field="DEBUG",
                severity=ValidationSeverity.ERROR,
                message="Debug mode must be disabled in production",
                suggestion="Set DEBUG=false for production",
            )
        )

    if settings.ENVIRONMENT == "production" and settings.log_level == "DEBUG":
        results.append(
            ValidationResult(
                field="log_level",
                severity=ValidationSeverity.WARNING,
                message="DEBUG log level in production may expose sensitive data",
                suggestion="Use INFO or WARNING for production",
            )
        )

    return results


def get_configuration_summary(settings: Settings | None = None) -> dict[str, Any]:
    """Get a summary of current configuration (safe for logging).

    Excludes secrets and connection strings.
    """
    if settings is None:
        settings = get_settings()

    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "log_level": settings.log_level,
        "api_port": settings.API_PORT,
        "api_key_configured": settings.API_SECRET_KEY is not None,
        "storage_backend": settings.STORAGE_BACKEND.value,
        "lock_backend": settings.erasure.lock_backend.value,
        "code_ttl_seconds": settings.erasure.code_ttl_seconds,
        "challenge_max_attempts": settings.erasure.challenge_max_attempts,
        "tier_concurrency": settings.erasure.tier_concurrency,
    }
