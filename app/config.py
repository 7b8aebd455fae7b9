"""
Configuration for the FarmRod advisor
=====================================
Runtime settings for the suggestion cache, the cleanup janitor, the
performance monitor and the optional LLM backend.
Every value can be overridden through environment variables.
Setups the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from app.domain.cleanup import CleanupConfig
from app.domain.exceptions import ConfigurationError

LLM_PROVIDERS = ("none", "huggingface", "openai")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


def _env_optional_float(name: str, default: float | None) -> float | None:
    value = os.getenv(name)
    if value is None:
        return default
    if value.strip().lower() in {"", "none", "off", "0"}:
        return None
    return _env_float(name, 0.0)


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("FARMROD_ENV", "development"))
    database_path: str = field(default_factory=lambda: os.getenv("FARMROD_DATABASE_PATH", "database/farmrod.db"))
    log_level: str = field(default_factory=lambda: os.getenv("FARMROD_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("FARMROD_LOG_DIR", "logs"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("FARMROD_DEBUG", False))

    # Suggestion cache
    suggestion_freshness_minutes: float = field(
        default_factory=lambda: _env_float("SUGGESTION_FRESHNESS_MINUTES", 5.0)
    )
    generation_timeout_seconds: float | None = field(
        default_factory=lambda: _env_optional_float("SUGGESTION_GENERATION_TIMEOUT", 45.0)
    )
    default_plant_type: str = field(default_factory=lambda: os.getenv("SUGGESTION_DEFAULT_PLANT_TYPE", "Unknown"))

    # Cache cleanup policy (initial values; live policy is owned by CacheCleanupService)
    cache_suggestion_ttl_hours: float = field(default_factory=lambda: _env_float("CACHE_SUGGESTION_TTL_HOURS", 24.0))
    cache_max_suggestions_per_rod: int = field(default_factory=lambda: _env_int("CACHE_MAX_SUGGESTIONS_PER_ROD", 50))
    cache_cleanup_interval_hours: float = field(
        default_factory=lambda: _env_float("CACHE_CLEANUP_INTERVAL_HOURS", 6.0)
    )
    cache_cleanup_logging: bool = field(default_factory=lambda: _env_bool("CACHE_CLEANUP_LOGGING", True))
    cache_auto_cleanup: bool = field(default_factory=lambda: _env_bool("CACHE_AUTO_CLEANUP", False))

    # Performance monitor
    monitor_max_events: int = field(default_factory=lambda: _env_int("CACHE_MONITOR_MAX_EVENTS", 1000))

    # LLM Configuration
    # Provider: "none" (rule-based only), "huggingface", "openai"
    llm_provider: str = field(default_factory=lambda: os.getenv("LLM_PROVIDER", "none"))
    llm_api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("HF_TOKEN", ""))
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", ""))
    llm_base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", ""))
    llm_max_tokens: int = field(default_factory=lambda: _env_int("LLM_MAX_TOKENS", 400))
    llm_temperature: float = field(default_factory=lambda: _env_float("LLM_TEMPERATURE", 0.3))
    llm_timeout: int = field(default_factory=lambda: _env_int("LLM_TIMEOUT", 30))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.suggestion_freshness_minutes <= 0:
            raise ValueError("SUGGESTION_FRESHNESS_MINUTES must be positive.")
        if self.monitor_max_events <= 0:
            raise ValueError("CACHE_MONITOR_MAX_EVENTS must be positive.")
        if (self.llm_provider or "none").strip().lower() not in LLM_PROVIDERS:
            raise ConfigurationError(
                f"LLM_PROVIDER must be one of {', '.join(LLM_PROVIDERS)} (got {self.llm_provider!r})."
            )
        # Broken cleanup policy fails at startup
        self.cleanup_config()

    def cleanup_config(self) -> CleanupConfig:
        """Build the initial cleanup policy from the configured values."""
        return CleanupConfig(
            suggestion_ttl_hours=self.cache_suggestion_ttl_hours,
            max_suggestions_per_rod=self.cache_max_suggestions_per_rod,
            cleanup_interval_hours=self.cache_cleanup_interval_hours,
            enable_logging=self.cache_cleanup_logging,
        ).validated()

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "DATABASE_PATH": self.database_path,
            "DEBUG": self.DEBUG,
        }


def load_config() -> AppConfig:
    """Load application configuration from the environment."""
    return AppConfig()


CONSOLE_HANDLER = "farmrod_console"
FILE_HANDLER = "farmrod_file"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False, log_dir: str | None = "logs", level: str = "INFO") -> None:
    """Install the console handler and, when *log_dir* is set, ``farmrod.log``.

    Handlers are named, so calling this again only adjusts levels.
    *debug* forces DEBUG; otherwise *level* is a standard level name.
    """
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ConfigurationError(f"FARMROD_LOG_LEVEL {level!r} is not a logging level.")

    root = logging.getLogger()
    root.setLevel(log_level)
    installed = {getattr(h, "name", "") for h in root.handlers}
    formatter = logging.Formatter(LOG_FORMAT)

    new_handlers: list[logging.Handler] = []
    if CONSOLE_HANDLER not in installed:
        with suppress(AttributeError, ValueError):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        console = logging.StreamHandler(stream=sys.stdout)
        console.name = CONSOLE_HANDLER
        new_handlers.append(console)
    if log_dir and FILE_HANDLER not in installed:
        os.makedirs(log_dir, exist_ok=True)
        log_file = RotatingFileHandler(
            os.path.join(log_dir, "farmrod.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        log_file.name = FILE_HANDLER
        new_handlers.append(log_file)

    for handler in new_handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    for handler in root.handlers:
        if getattr(handler, "name", "") in (CONSOLE_HANDLER, FILE_HANDLER):
            handler.setLevel(log_level)

    if new_handlers:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("FARMROD_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
    # The openai SDK logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
