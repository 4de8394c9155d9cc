"""
Static configuration management for Ascendant.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at process startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Game balance tunables (handled by ConfigManager)
- Runtime configuration changes (except safe reload)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Class-level attributes with classmethod loaders (no instantiation)
- Auto-loads on module import via Config.load()
- Directory paths relative to project root for portability

Configuration Categories
------------------------
1. Database: connection URL and echo flag
2. Locking: backend selection, Redis URL, lock timeouts
3. Content generator: backend, OpenAI credentials, timeout
4. Retry policy: attempts and backoff
5. Environment: environment type, logging

Environment Variables
---------------------
Optional (with defaults):
- DATABASE_URL: SQLAlchemy async URL (default: local SQLite via aiosqlite)
- LOCK_BACKEND: "memory" or "redis" (default: memory)
- REDIS_URL: Redis connection string (default: localhost)
- GENERATOR_BACKEND: "static" or "openai" (default: static)
- OPENAI_API_KEY / OPENAI_MODEL
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized during bootstrap
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and any parse errors."""

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for Ascendant.

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _metrics: Optional[_ConfigLoadMetrics] = None

    # =========================================================================
    # Database
    # =========================================================================

    DATABASE_URL: str = "sqlite+aiosqlite:///./ascendant.db"
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Locking
    # =========================================================================

    LOCK_BACKEND: str = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    LOCK_TIMEOUT_SECONDS: int = 10
    LOCK_WAIT_SECONDS: float = 5.0
    LOCK_RETRY_INTERVAL_SECONDS: float = 0.05

    # =========================================================================
    # Content Generator
    # =========================================================================

    GENERATOR_BACKEND: str = "static"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    GENERATOR_TIMEOUT_SECONDS: float = 30.0

    # =========================================================================
    # Retry Policy
    # =========================================================================

    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_BACKOFF_MS: int = 50
    RETRY_MAX_BACKOFF_MS: int = 1000
    RETRY_JITTER_MS: int = 50

    # =========================================================================
    # Environment
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    BALANCE_OVERRIDES_DIR: Optional[str] = None

    # =========================================================================
    # Safe parsers
    # =========================================================================

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _record_error(cls, key: str, error: str) -> None:
        logging.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Example
        -------
        >>> Config._safe_int("RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=10)
        3
        """
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            cls._record_error(
                key, f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default
        if max_val is not None and value > max_val:
            cls._record_error(
                key, f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_float(
        cls,
        key: str,
        default: float,
        min_val: Optional[float] = None,
    ) -> float:
        """Safely parse a float from environment."""
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = float(raw_value)
        except ValueError:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid number, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            cls._record_error(
                key, f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default)
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: Optional[str]) -> Optional[str]:
        """Safely get string from environment."""
        cls._init_metrics()
        value = os.getenv(key, default)
        if cls._metrics:
            cls._metrics.record_env_load(key, key in os.environ, default)
        return value

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called on module import; call again to pick up a changed environment
        (tests use this after monkeypatching variables).
        """
        cls._init_metrics()

        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "sqlite+aiosqlite:///./ascendant.db")
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))

        cls.LOCK_BACKEND = (cls._safe_str("LOCK_BACKEND", "memory") or "memory").lower()
        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.LOCK_TIMEOUT_SECONDS = cls._safe_int("LOCK_TIMEOUT_SECONDS", 10, min_val=1, max_val=300)
        cls.LOCK_WAIT_SECONDS = cls._safe_float("LOCK_WAIT_SECONDS", 5.0, min_val=0.0)
        cls.LOCK_RETRY_INTERVAL_SECONDS = cls._safe_float(
            "LOCK_RETRY_INTERVAL_SECONDS", 0.05, min_val=0.001
        )

        cls.GENERATOR_BACKEND = (cls._safe_str("GENERATOR_BACKEND", "static") or "static").lower()
        cls.OPENAI_API_KEY = cls._safe_str("OPENAI_API_KEY", None)
        cls.OPENAI_MODEL = cls._safe_str("OPENAI_MODEL", "gpt-4o-mini")
        cls.GENERATOR_TIMEOUT_SECONDS = cls._safe_float(
            "GENERATOR_TIMEOUT_SECONDS", 30.0, min_val=0.1
        )

        cls.RETRY_MAX_ATTEMPTS = cls._safe_int("RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20)
        cls.RETRY_INITIAL_BACKOFF_MS = cls._safe_int("RETRY_INITIAL_BACKOFF_MS", 50, min_val=0)
        cls.RETRY_MAX_BACKOFF_MS = cls._safe_int("RETRY_MAX_BACKOFF_MS", 1000, min_val=0)
        cls.RETRY_JITTER_MS = cls._safe_int("RETRY_JITTER_MS", 50, min_val=0)

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development") or "development"
        cls.LOG_LEVEL = (cls._safe_str("LOG_LEVEL", "INFO") or "INFO").upper()
        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            cls._record_error("LOG_LEVEL", f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)

        cls.BALANCE_OVERRIDES_DIR = cls._safe_str("BALANCE_OVERRIDES_DIR", None)

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive configuration summary for debugging."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "lock_backend": cls.LOCK_BACKEND,
            "generator_backend": cls.GENERATOR_BACKEND,
            "openai_key_set": bool(cls.OPENAI_API_KEY),
            "retry_max_attempts": cls.RETRY_MAX_ATTEMPTS,
        }


# Load on import
Config.load()
