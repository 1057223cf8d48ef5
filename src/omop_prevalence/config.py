"""
Configuration for prevalence reporting.

Loads configuration from environment variables (and a .env file).
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Tuple

from dotenv import load_dotenv

from omop_prevalence.exceptions import ValidationError
from omop_prevalence.models import FailurePolicy
from omop_prevalence.validation import (
    DEFAULT_START_DATE,
    DEFAULT_END_DATE,
    build_window,
    validate_schema,
)

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required values."""
    pass


@dataclass
class DatabaseConfig:
    """Database configuration."""
    database_url: str = ""
    cdm_schema: str = "cdm"
    vocabulary_schema: Optional[str] = None  # Defaults to cdm_schema
    statement_timeout_ms: int = 300_000      # Per-query deadline
    max_retries: int = 2                     # Transient connectivity errors only
    retry_backoff: float = 1.0               # Seconds, doubled per attempt
    min_connections: int = 1
    max_connections: int = 10

    @property
    def vocab_schema(self) -> str:
        return self.vocabulary_schema or self.cdm_schema


@dataclass
class AnalysisConfig:
    """Report run configuration."""
    start_date: str = DEFAULT_START_DATE.isoformat()
    end_date: str = DEFAULT_END_DATE.isoformat()
    failure_policy: str = FailurePolicy.ABORT.value
    max_workers: int = 1


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = "logs/prevalence"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration class."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: {value!r}")


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Environment variables:
        OMOP_DATABASE_URL: PostgreSQL connection string
        OMOP_CDM_SCHEMA: Schema holding the clinical tables
        OMOP_VOCABULARY_SCHEMA: Schema holding the vocabulary tables (default: CDM schema)
        OMOP_STATEMENT_TIMEOUT_MS: Per-query timeout in milliseconds
        OMOP_MAX_RETRIES: Retries for transient connectivity errors
        OMOP_MIN_CONNECTIONS / OMOP_MAX_CONNECTIONS: Connection pool bounds
        PREVALENCE_START_DATE / PREVALENCE_END_DATE: Default analysis window
        PREVALENCE_FAILURE_POLICY: "abort" or "skip"
        PREVALENCE_MAX_WORKERS: Parallel category pipelines
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        LOG_DIR: Directory for rotating log files
    """
    config = Config()

    # Database
    config.database.database_url = os.getenv("OMOP_DATABASE_URL", "")
    if not config.database.database_url:
        logger.warning("OMOP_DATABASE_URL not set")

    config.database.cdm_schema = os.getenv("OMOP_CDM_SCHEMA", config.database.cdm_schema)
    config.database.vocabulary_schema = os.getenv("OMOP_VOCABULARY_SCHEMA") or None
    config.database.statement_timeout_ms = _int_env(
        "OMOP_STATEMENT_TIMEOUT_MS", config.database.statement_timeout_ms
    )
    config.database.max_retries = _int_env("OMOP_MAX_RETRIES", config.database.max_retries)
    config.database.min_connections = _int_env("OMOP_MIN_CONNECTIONS", config.database.min_connections)
    config.database.max_connections = _int_env("OMOP_MAX_CONNECTIONS", config.database.max_connections)

    # Analysis
    config.analysis.start_date = os.getenv("PREVALENCE_START_DATE", config.analysis.start_date)
    config.analysis.end_date = os.getenv("PREVALENCE_END_DATE", config.analysis.end_date)
    config.analysis.failure_policy = os.getenv(
        "PREVALENCE_FAILURE_POLICY", config.analysis.failure_policy
    )
    config.analysis.max_workers = _int_env("PREVALENCE_MAX_WORKERS", config.analysis.max_workers)

    # Logging
    config.logging.level = os.getenv("LOG_LEVEL", "INFO")
    config.logging.log_dir = os.getenv("LOG_DIR", config.logging.log_dir)

    logger.info("Configuration loaded successfully")
    return config


def validate_config(config: Config, strict: bool = True) -> Tuple[List[str], List[str]]:
    """
    Validate configuration and return errors and warnings.

    Args:
        config: Configuration to validate
        strict: If True, raise ConfigurationError for critical issues

    Returns:
        Tuple of (errors, warnings) lists

    Raises:
        ConfigurationError: If strict=True and critical errors found
    """
    errors = []
    warnings = []

    # Critical: Database URL
    url = config.database.database_url
    if not url:
        errors.append("OMOP_DATABASE_URL is required but not set")
    elif not url.startswith(("postgresql://", "postgres://")):
        errors.append(f"OMOP_DATABASE_URL must start with 'postgresql://', got: {url[:20]}...")

    # Schemas
    for label, schema in (("cdm_schema", config.database.cdm_schema),
                          ("vocabulary_schema", config.database.vocab_schema)):
        try:
            validate_schema(schema)
        except ValidationError as e:
            errors.append(f"{label}: {e}")

    # Analysis window
    try:
        build_window(config.analysis.start_date, config.analysis.end_date)
    except ValidationError as e:
        errors.append(f"analysis window: {e}")

    try:
        FailurePolicy.from_value(config.analysis.failure_policy)
    except ValueError as e:
        errors.append(str(e))

    # Processing
    if config.analysis.max_workers < 1:
        errors.append(f"max_workers must be >= 1, got: {config.analysis.max_workers}")

    if config.database.max_retries < 0:
        errors.append(f"max_retries must be >= 0, got: {config.database.max_retries}")

    if config.database.statement_timeout_ms < 0:
        errors.append(f"statement_timeout_ms must be >= 0, got: {config.database.statement_timeout_ms}")
    elif config.database.statement_timeout_ms == 0:
        warnings.append("statement_timeout_ms is 0 - queries will run without a deadline")

    # Connection pool
    if config.database.min_connections < 1:
        errors.append(f"min_connections must be >= 1, got: {config.database.min_connections}")

    if config.database.max_connections < config.database.min_connections:
        errors.append(f"max_connections ({config.database.max_connections}) must be >= "
                      f"min_connections ({config.database.min_connections})")

    if config.analysis.max_workers > config.database.max_connections:
        warnings.append(f"max_workers ({config.analysis.max_workers}) exceeds max_connections "
                        f"({config.database.max_connections}) - workers will wait for connections")

    # Log results
    if errors:
        logger.error(f"Configuration validation failed with {len(errors)} error(s):")
        for error in errors:
            logger.error(f"  - {error}")

    if warnings:
        logger.warning(f"Configuration has {len(warnings)} warning(s):")
        for warning in warnings:
            logger.warning(f"  - {warning}")

    if strict and errors:
        error_msg = "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{error_msg}")

    return errors, warnings


# Global config instance
_config: Optional[Config] = None


def get_config(validate: bool = True, strict: bool = False) -> Config:
    """
    Get or create global config instance.

    Args:
        validate: If True, validate configuration
        strict: If True, raise ConfigurationError on validation errors

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = load_config()
        if validate:
            validate_config(_config, strict=strict)
    return _config


def reload_config(validate: bool = True, strict: bool = False) -> Config:
    """Force reload configuration."""
    global _config
    _config = load_config()
    if validate:
        validate_config(_config, strict=strict)
    return _config
