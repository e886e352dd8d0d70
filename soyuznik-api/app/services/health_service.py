from datetime import datetime, timezone
from typing import Callable, Optional

from app.config import settings
from app.database import check_database
from app.logging_config import get_logger
from app.services.telegram_service import TelegramService

logger = get_logger("health_service")


class StartupCheckError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def check_telegram(telegram: TelegramService) -> bool:
    result = telegram.get_me()
    if not result.get("ok"):
        logger.error(f"Telegram check failed: {result}")
        return False
    return True


def get_system_status(
    telegram: TelegramService,
    started_at: datetime,
    db_check: Optional[Callable[[], bool]] = None,
) -> dict:
    """Probe the bot API and the database."""
    now = datetime.now(timezone.utc)
    return {
        "telegram": check_telegram(telegram),
        "database": (db_check or check_database)(),
        "uptime_seconds": round((now - started_at).total_seconds(), 3),
        "checked_at": now.isoformat(),
    }


def get_config_presence() -> dict:
    """Which secrets are configured. Values are never returned."""
    return {
        "telegram_bot_token": bool(settings.telegram_bot_token),
        "openai_api_key": bool(settings.openai_api_key),
        "database_url": bool(settings.database_url),
        "public_base_url": bool(settings.public_base_url),
    }


def run_startup_check(telegram: TelegramService, db_check: Optional[Callable[[], bool]] = None) -> None:
    """Raise StartupCheckError if Telegram or the database is unreachable."""
    failures = []
    if not check_telegram(telegram):
        failures.append("telegram")
    if not (db_check or check_database)():
        failures.append("database")

    if failures:
        raise StartupCheckError(f"Startup connectivity check failed: {', '.join(failures)}")
    logger.info("Startup connectivity check passed")


STARTED_AT = datetime.now(timezone.utc)


def get_started_at() -> datetime:
    return STARTED_AT
