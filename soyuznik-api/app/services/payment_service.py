from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import User
from app.services.access_status import (
    AccessStatus,
    InvalidTransitionError,
    confirm_payment,
    parse_status,
    transition,
)
from app.services.telegram_service import TelegramService
from app.services.user_service import get_or_create_user, get_user_by_chat_id, record_payment, set_user_status

logger = get_logger("payment_service")

MSG_PAYMENT_CONFIRMED = (
    "✅ Оплата прошла успешно! Перейдите в чат с союзником @{bot} и отправьте /start, "
    "чтобы познакомиться."
)


class PaymentError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _require_subscriber(subscriber_id: Optional[str]) -> str:
    if not subscriber_id:
        raise PaymentError("subscriber_id is required")
    return subscriber_id


def register_subscriber(
    db: Session, subscriber_id: Optional[str], username: Optional[str] = None, name: Optional[str] = None
) -> User:
    """Create the user on first contact, refresh username otherwise."""
    chat_id = _require_subscriber(subscriber_id)
    user = get_or_create_user(db, chat_id, username=username)
    if name and not user.custom_name:
        user.custom_name = name
    logger.info(f"Subscriber registered: {chat_id}", extra={"context": {"status": user.status}})
    return user


def confirm_subscriber_payment(
    db: Session,
    subscriber_id: Optional[str],
    action: Optional[str] = None,
    amount: Optional[Decimal] = None,
    currency: Optional[str] = None,
    payload: Optional[dict] = None,
) -> Tuple[User, str]:
    """Mark the subscriber as paid and append a payment row. Returns (user, old_status).

    Does not commit; the caller commits before sending the confirmation.
    """
    chat_id = _require_subscriber(subscriber_id)
    if action is not None and action != settings.payment_confirmation_action:
        raise PaymentError(f"Unsupported action '{action}'")

    user = get_or_create_user(db, chat_id)
    old_status = parse_status(user.status)
    new_status = confirm_payment(old_status)

    if new_status != old_status:
        set_user_status(db, user, new_status)
    user.paid_at = datetime.now(timezone.utc)
    record_payment(db, user, amount=amount, currency=currency, payload=payload)

    logger.info(
        f"Payment confirmed for {chat_id}",
        extra={"context": {"old_status": old_status.value, "new_status": new_status.value}},
    )
    return user, old_status.value


def send_payment_confirmation(telegram: TelegramService, user: User) -> bool:
    """Single attempt, no retry."""
    result = telegram.send_message(
        chat_id=user.telegram_chat_id,
        text=MSG_PAYMENT_CONFIRMED.format(bot=settings.chatbot_username),
    )
    if not result.get("ok"):
        logger.warning(f"Payment confirmation not delivered to {user.telegram_chat_id}")
        return False
    return True


def update_subscriber_status(db: Session, subscriber_id: Optional[str], status: AccessStatus) -> Tuple[User, str]:
    """Explicit status change requested by the bot builder. Returns (user, old_status)."""
    chat_id = _require_subscriber(subscriber_id)
    user = get_user_by_chat_id(db, chat_id)
    if not user:
        raise PaymentError(f"Subscriber {chat_id} not found", status_code=404)

    old_status = parse_status(user.status)
    if old_status == status:
        return user, old_status.value

    try:
        new_status = transition(old_status, status)
    except InvalidTransitionError as e:
        raise PaymentError(e.message)

    set_user_status(db, user, new_status)
    return user, old_status.value
