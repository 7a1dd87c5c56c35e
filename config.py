import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        scheduler_enabled: bool,
        auto_post_interval_minutes: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.scheduler_enabled = scheduler_enabled
        self.auto_post_interval_minutes = auto_post_interval_minutes


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "mini-money.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("EXPENSES_TIMEZONE", "Asia/Shanghai")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    scheduler_enabled = _env_flag("EXPENSES_SCHEDULER_ENABLED", "1")
    auto_post_interval_minutes = int(
        os.getenv("EXPENSES_AUTO_POST_INTERVAL_MINUTES", "60")
    )
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        scheduler_enabled=scheduler_enabled,
        auto_post_interval_minutes=auto_post_interval_minutes,
    )
