"""Routing of inbound Telegram messages.

Every update goes through the same checks: known user, chat access, then
either the onboarding questionnaire or free chat with the LLM. The outcome is
returned as a Result so the caller decides how to acknowledge the update.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import ChatLoggerAdapter, get_logger
from app.models import OnboardingState, User
from app.schemas.telegram import TelegramMessage, TelegramUpdate
from app.services import access_status
from app.services.ai_service import IMAGE_PROMPT, describe_image, generate_chat_reply, get_recall_reply
from app.services.history_service import append_turn, get_recent_turns
from app.services.llm import LLMProvider
from app.services.onboarding import (
    MSG_WELCOME,
    NEXT_PROMPTS,
    STEP_FIELDS,
    is_command,
    is_start_command,
    next_step,
    parse_step,
)
from app.services.result import ACCESS_DENIED, AI_ERROR, DB_ERROR, SEND_ERROR, USER_NOT_FOUND, Result
from app.services.summary_service import get_last_summary
from app.services.telegram_service import TelegramService
from app.services.user_service import (
    finish_onboarding,
    get_onboarding_state,
    get_user_by_chat_id,
    set_onboarding_step,
    set_user_status,
    start_onboarding,
    update_user_fields,
)

logger = get_logger("dispatcher")

MSG_USER_NOT_FOUND = "⛔ Ошибка: пользователь не найден. Пожалуйста, начните с @{bot}."
MSG_ACCESS_DENIED = "⛔ Доступ закрыт. Пожалуйста, вернитесь в основной чат @{bot} для оплаты."
MSG_AI_ERROR = "⛔ Произошла ошибка. Попробуйте снова или обратитесь в поддержку."
MSG_IMAGE_PREFIX = "Описание изображения: "

# Outcome values reported in successful results
OUTCOME_IGNORED = "ignored"
OUTCOME_ONBOARDING_STARTED = "onboarding_started"
OUTCOME_ONBOARDING_DONE = "onboarding_done"
OUTCOME_RECALL = "recall_reply"
OUTCOME_CHAT = "chat_reply"
OUTCOME_IMAGE = "image_description"


def _send(telegram: TelegramService, chat_id: str, text: str) -> bool:
    result = telegram.send_message(chat_id=chat_id, text=text)
    return bool(result.get("ok"))


def _store_failure(db: Session, log: ChatLoggerAdapter, action: str, error: SQLAlchemyError) -> Result[str]:
    db.rollback()
    log.error(f"Store write failed during {action}, turn dropped", context={"error": str(error)})
    return Result.failure(f"{action}: {error}", DB_ERROR)


def _reply_result(sent: bool, outcome: str) -> Result[str]:
    if not sent:
        return Result.failure(f"Reply not delivered ({outcome})", SEND_ERROR)
    return Result.success(outcome)


def process_update(
    db: Session,
    telegram: TelegramService,
    update: TelegramUpdate,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    """Handle one inbound update."""
    message = update.message
    if message is None:
        return Result.success(OUTCOME_IGNORED)
    return handle_message(db, telegram, message, provider=provider)


def handle_message(
    db: Session,
    telegram: TelegramService,
    message: TelegramMessage,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    chat_id = str(message.chat.id)
    log = ChatLoggerAdapter(logger, {"chat_id": chat_id})
    log.info(f"Chatbot message: {message.text or 'Non-text message'}")

    try:
        user = get_user_by_chat_id(db, chat_id)
    except SQLAlchemyError as e:
        return _store_failure(db, log, "user lookup", e)

    if not user:
        log.warning("User not found")
        _send(telegram, chat_id, MSG_USER_NOT_FOUND.format(bot=settings.main_bot_username))
        return Result.failure(f"User {chat_id} not found", USER_NOT_FOUND)

    if not access_status.has_chat_access(user.status):
        log.info(f"Access denied, status: {user.status}")
        _send(telegram, chat_id, MSG_ACCESS_DENIED.format(bot=settings.main_bot_username))
        return Result.failure(f"Access denied for status {user.status}", ACCESS_DENIED)

    if message.photo:
        return handle_photo(db, telegram, user, message, log, provider=provider)

    text = message.text
    if not text:
        return Result.success(OUTCOME_IGNORED)

    if is_start_command(text):
        return handle_start(db, telegram, user, log)

    if is_command(text):
        log.info(f"Ignoring command: {text}")
        return Result.success(OUTCOME_IGNORED)

    try:
        state = get_onboarding_state(db, user)
    except SQLAlchemyError as e:
        return _store_failure(db, log, "state lookup", e)

    if state:
        return handle_onboarding_answer(db, telegram, user, state, text, log)

    return handle_chat(db, telegram, user, text, log, provider=provider)


def handle_start(db: Session, telegram: TelegramService, user: User, log: ChatLoggerAdapter) -> Result[str]:
    try:
        start_onboarding(db, user)
        db.commit()
    except SQLAlchemyError as e:
        return _store_failure(db, log, "onboarding start", e)

    log.info("Onboarding started")
    sent = _send(telegram, user.telegram_chat_id, MSG_WELCOME)
    return _reply_result(sent, OUTCOME_ONBOARDING_STARTED)


def handle_onboarding_answer(
    db: Session,
    telegram: TelegramService,
    user: User,
    state: OnboardingState,
    text: str,
    log: ChatLoggerAdapter,
) -> Result[str]:
    step = parse_step(state.step)
    if step is None:
        log.warning(f"Unexpected onboarding step {state.step}, no action taken")
        return Result.success(OUTCOME_IGNORED)

    following = next_step(step)
    try:
        update_user_fields(db, user, **{STEP_FIELDS[step]: text})
        if following is not None:
            set_onboarding_step(db, state, following)
        else:
            status = access_status.activate(access_status.parse_status(user.status))
            set_user_status(db, user, status)
            user.chat_started_at = datetime.now(timezone.utc)
            finish_onboarding(db, state)
        db.commit()
    except SQLAlchemyError as e:
        return _store_failure(db, log, f"onboarding step {step.value}", e)

    log.info(f"Onboarding step {step.value} answered", context={"next_step": following.value if following else None})
    sent = _send(telegram, user.telegram_chat_id, NEXT_PROMPTS[step])
    outcome = f"onboarding_step_{following.value}" if following is not None else OUTCOME_ONBOARDING_DONE
    return _reply_result(sent, outcome)


def handle_chat(
    db: Session,
    telegram: TelegramService,
    user: User,
    text: str,
    log: ChatLoggerAdapter,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    chat_id = user.telegram_chat_id

    recall = get_recall_reply(user, text)
    if recall:
        log.info("Answering recall question from profile")
        return _reply_result(_send(telegram, chat_id, recall), OUTCOME_RECALL)

    try:
        append_turn(db, chat_id, "user", text)
        db.commit()
        history = get_recent_turns(db, chat_id)
        last_summary = get_last_summary(db, chat_id)
    except SQLAlchemyError as e:
        return _store_failure(db, log, "history update", e)

    result = generate_chat_reply(history, last_summary=last_summary, provider=provider)
    if not result.ok:
        _send(telegram, chat_id, MSG_AI_ERROR)
        return Result.failure(result.error, AI_ERROR)

    sent = _send(telegram, chat_id, result.value)

    try:
        append_turn(db, chat_id, "assistant", result.value)
        db.commit()
    except SQLAlchemyError as e:
        return _store_failure(db, log, "history update", e)

    return _reply_result(sent, OUTCOME_CHAT)


def handle_photo(
    db: Session,
    telegram: TelegramService,
    user: User,
    message: TelegramMessage,
    log: ChatLoggerAdapter,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    chat_id = user.telegram_chat_id
    photo = message.largest_photo
    file_url = telegram.get_file_url(photo.file_id)
    if not file_url:
        log.warning("Could not resolve photo URL")
        _send(telegram, chat_id, MSG_AI_ERROR)
        return Result.failure("getFile failed", SEND_ERROR)

    try:
        history = get_recent_turns(db, chat_id)
        last_summary = get_last_summary(db, chat_id)
    except SQLAlchemyError as e:
        return _store_failure(db, log, "history read", e)

    result = describe_image(file_url, history, last_summary=last_summary, provider=provider)
    if not result.ok:
        _send(telegram, chat_id, MSG_AI_ERROR)
        return Result.failure(result.error, AI_ERROR)

    sent = _send(telegram, chat_id, f"{MSG_IMAGE_PREFIX}{result.value}")

    try:
        # Telegram file URLs embed the bot token, so only the prompt text is kept
        append_turn(db, chat_id, "user", IMAGE_PROMPT)
        append_turn(db, chat_id, "assistant", result.value)
        db.commit()
    except SQLAlchemyError as e:
        return _store_failure(db, log, "history update", e)

    return _reply_result(sent, OUTCOME_IMAGE)
