from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.models import OnboardingState, Payment, User
from app.services.access_status import AccessStatus
from app.services.onboarding import OnboardingStep


def get_user_by_chat_id(db: Session, chat_id: str) -> Optional[User]:
    """Find user by Telegram chat id."""
    return db.query(User).filter(User.telegram_chat_id == str(chat_id)).first()


def get_or_create_user(db: Session, chat_id: str, username: Optional[str] = None) -> User:
    """Find user by Telegram chat id or create a new one."""
    user = get_user_by_chat_id(db, chat_id)

    if not user:
        user = User(
            telegram_chat_id=str(chat_id),
            username=username,
            status=AccessStatus.NEW.value,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
        db.flush()
    elif username and user.username != username:
        user.username = username
        user.updated_at = datetime.now(timezone.utc)
        db.flush()

    return user


def update_user_fields(db: Session, user: User, **fields) -> User:
    for name, value in fields.items():
        setattr(user, name, value)
    user.updated_at = datetime.now(timezone.utc)
    db.flush()
    return user


def set_user_status(db: Session, user: User, status: AccessStatus) -> User:
    user.status = status.value
    user.updated_at = datetime.now(timezone.utc)
    db.flush()
    return user


def get_onboarding_state(db: Session, user: User) -> Optional[OnboardingState]:
    return db.query(OnboardingState).filter(OnboardingState.user_id == user.id).first()


def start_onboarding(db: Session, user: User) -> OnboardingState:
    """Create the state record at step 1, or rewind an existing one."""
    state = get_onboarding_state(db, user)
    now = datetime.now(timezone.utc)

    if state:
        state.step = OnboardingStep.NAME.value
        state.updated_at = now
    else:
        state = OnboardingState(user_id=user.id, step=OnboardingStep.NAME.value, updated_at=now)
        db.add(state)

    db.flush()
    return state


def set_onboarding_step(db: Session, state: OnboardingState, step: OnboardingStep) -> OnboardingState:
    state.step = step.value
    state.updated_at = datetime.now(timezone.utc)
    db.flush()
    return state


def finish_onboarding(db: Session, state: OnboardingState) -> None:
    db.delete(state)
    db.flush()


def record_payment(
    db: Session,
    user: User,
    amount: Optional[Decimal] = None,
    currency: Optional[str] = None,
    payload: Optional[dict] = None,
) -> Payment:
    """Append a payment event for the user."""
    payment = Payment(
        user_id=user.id,
        telegram_chat_id=user.telegram_chat_id,
        amount=amount,
        currency=currency,
        payload=payload or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(payment)
    db.flush()
    return payment
