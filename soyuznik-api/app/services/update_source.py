"""Inbound update sources: webhook registration and long polling."""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.services.dispatcher import process_update
from app.services.llm import LLMProvider
from app.services.telegram_service import TelegramService
from app.services.update_parser import UnrecognizedEventError, parse_update

logger = get_logger("update_source")

WEBHOOK_PATH = "/telegram-webhook"


def build_webhook_url(public_base_url: str) -> str:
    return f"{public_base_url.rstrip('/')}{WEBHOOK_PATH}"


def register_webhook(telegram: TelegramService, public_base_url: Optional[str] = None) -> bool:
    """Point Telegram at our webhook. No-op without a public URL."""
    base = public_base_url or settings.public_base_url
    if not base:
        logger.warning("PUBLIC_BASE_URL is not set, webhook not registered")
        return False

    url = build_webhook_url(base)
    result = telegram.set_webhook(url)
    if not result.get("ok"):
        logger.error(f"setWebhook failed: {result}")
        return False
    logger.info(f"Webhook registered: {url}")
    return True


def poll_once(
    session_factory: Callable[[], Session],
    telegram: TelegramService,
    offset: Optional[int] = None,
    provider: Optional[LLMProvider] = None,
    timeout: Optional[int] = None,
) -> Optional[int]:
    """Fetch one batch of updates and dispatch them. Returns the next offset."""
    raw_updates = telegram.get_updates(
        offset=offset,
        timeout=timeout if timeout is not None else settings.polling_timeout_seconds,
    )
    if not raw_updates:
        return offset

    db = session_factory()
    try:
        for raw in raw_updates:
            update_id = raw.get("update_id") if isinstance(raw, dict) else None
            if isinstance(update_id, int):
                offset = max(offset or 0, update_id + 1)

            try:
                update = parse_update(raw)
            except UnrecognizedEventError as e:
                logger.warning(f"Skipping polled update: {e.message}", extra={"context": {"update": raw}})
                continue

            try:
                result = process_update(db, telegram, update, provider=provider)
            except Exception as e:
                # The offset already covers this update, so it is not fetched again
                db.rollback()
                logger.error(
                    f"Polled update failed: {e}",
                    exc_info=True,
                    extra={"context": {"update_id": update.update_id}},
                )
                continue

            if result.is_store_failure:
                logger.error(
                    "Polled update dropped after store failure",
                    extra={"context": {"update_id": update.update_id, "error": result.error}},
                )
            elif not result.ok:
                logger.info(
                    "Polled update not handled",
                    extra={"context": {"update_id": update.update_id, "code": result.error_code}},
                )
    finally:
        db.close()

    return offset
