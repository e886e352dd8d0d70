from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.logging_config import get_logger, truncate_body
from app.schemas.telegram import TelegramWebhookResponse
from app.services.ai_service import get_llm_provider
from app.services.dispatcher import process_update
from app.services.llm import LLMProvider
from app.services.telegram_service import TelegramService, get_telegram_service
from app.services.update_parser import BodyTooLargeError, WebhookBodyError, parse_webhook_body

logger = get_logger("telegram_webhook")

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def read_update_body(request: Request) -> bytes:
    """Read the raw body, enforcing the size limit before and after reading."""
    limit = settings.webhook_max_body_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise BodyTooLargeError()

    raw = await request.body()
    if len(raw) > limit:
        raise BodyTooLargeError()
    return raw


@router.post("/telegram-webhook", response_model=TelegramWebhookResponse)
async def handle_telegram_webhook(
    request: Request,
    db: Session = Depends(get_db),
    telegram: TelegramService = Depends(get_telegram_service),
    provider: LLMProvider = Depends(get_llm_provider),
):
    """Receive one Telegram update and hand it to the dispatcher."""
    logger.debug("Webhook headers", extra={"context": {"headers": dict(request.headers)}})

    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type.lower():
        logger.warning(f"Rejected webhook body with content type '{content_type}'")
        return _error(400, "Invalid body type")

    try:
        raw = await read_update_body(request)
        logger.info("Webhook body received", extra={"context": {"body": truncate_body(raw)}})
        update = parse_webhook_body(raw)
    except WebhookBodyError as e:
        logger.warning(f"Rejected webhook body: {e.message}")
        return _error(e.status_code, e.message)

    try:
        result = await run_in_threadpool(process_update, db, telegram, update, provider)
    except Exception as e:
        logger.error(f"Webhook processing error: {e}", exc_info=True)
        return _error(500, "Internal server error")

    if result.is_store_failure:
        # Acknowledged anyway: a redelivery would hit the same store state
        logger.error(
            "Update dropped after store failure",
            extra={"context": {"update_id": update.update_id, "error": result.error}},
        )
    elif not result.ok:
        logger.info(
            "Update not handled",
            extra={"context": {"update_id": update.update_id, "code": result.error_code, "error": result.error}},
        )
    return TelegramWebhookResponse(ok=True)


# Path used by the chatbot deployment before the rename
@router.post("/chatbot-webhook", response_model=TelegramWebhookResponse)
async def handle_chatbot_webhook(
    request: Request,
    db: Session = Depends(get_db),
    telegram: TelegramService = Depends(get_telegram_service),
    provider: LLMProvider = Depends(get_llm_provider),
):
    return await handle_telegram_webhook(request, db, telegram, provider)
