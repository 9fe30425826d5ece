from __future__ import annotations

from dataclasses import dataclass
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class BotConfig:
    account_id: str
    identity_secret: str

    max_attempts: int
    retry_backoff_seconds: float
    poll_retention_seconds: float

    database_path: str
    persist_poll_state: bool

    log_level: str

    def backoff_seconds(self, tries: int) -> float:
        return self.retry_backoff_seconds * max(0, tries)


def load_config() -> BotConfig:
    return BotConfig(
        account_id=os.getenv("BOT_ACCOUNT_ID", "").strip(),
        identity_secret=os.getenv(
            "BOT_IDENTITY_SECRET", os.getenv("STEAM_IDENTITY_SECRET", "")
        ),
        max_attempts=max(1, _env_int("BOT_MAX_ATTEMPTS", 5)),
        retry_backoff_seconds=max(0.0, _env_float("BOT_RETRY_BACKOFF_SECONDS", 5.0)),
        poll_retention_seconds=3600.0,
        database_path=os.getenv("BOT_DB_PATH", "data/tradeoffer_bot.db"),
        persist_poll_state=_env_flag("BOT_PERSIST_POLL_STATE"),
        log_level=os.getenv("BOT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
