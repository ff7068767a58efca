import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings
from pydantic import ConfigDict

ALLOWED_WAYS = (30, 60, 90)


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Optional[str] = None  # json | pretty; default follows ENV

    # Persistence
    STORE_BACKEND: str = "memory"  # memory | sql
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Storage keys (kept identical to the keys the browser widget used)
    PROGRESS_STORAGE_KEY: str = "brain-checkin-data"
    LABEL_STORAGE_KEY: str = "brain-label"
    LEGACY_WAY_STORAGE_KEY: str = "brain-way"

    # Journey defaults
    DEFAULT_WAY: int = 30
    DEFAULT_LABEL: str = "My Brain Journey"

    # IANA zone used for calendar days; None = host local time
    LOCAL_TIMEZONE: Optional[str] = None

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("brainjourney")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.DEFAULT_WAY not in ALLOWED_WAYS:
        problems.append(f"DEFAULT_WAY must be one of {ALLOWED_WAYS}, got {cfg.DEFAULT_WAY}")
    if cfg.STORE_BACKEND not in ("memory", "sql"):
        problems.append(f"STORE_BACKEND must be 'memory' or 'sql', got {cfg.STORE_BACKEND!r}")
    if cfg.STORE_BACKEND == "sql" and not (cfg.DATABASE_URL or cfg.TEST_DATABASE_URL):
        problems.append("STORE_BACKEND=sql requires DATABASE_URL")
    if getattr(cfg, "LOG_FORMAT", None) not in (None, "json", "pretty"):
        problems.append(f"LOG_FORMAT must be 'json' or 'pretty', got {cfg.LOG_FORMAT!r}")
    if cfg.LOCAL_TIMEZONE:
        try:
            ZoneInfo(cfg.LOCAL_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"LOCAL_TIMEZONE {cfg.LOCAL_TIMEZONE!r} is not a known IANA zone")

    if problems:
        message = "Invalid configuration: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
