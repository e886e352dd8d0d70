from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.bothelp import PaymentCallbackRequest, RegisterRequest, SubscriberResponse, UpdateStatusRequest
from app.services.payment_service import (
    PaymentError,
    confirm_subscriber_payment,
    register_subscriber,
    send_payment_confirmation,
    update_subscriber_status,
)
from app.services.telegram_service import TelegramService, get_telegram_service

router = APIRouter(prefix="/bothelp", tags=["bothelp"])


@router.post("/webhook", response_model=SubscriberResponse)
def handle_payment_callback(
    request: PaymentCallbackRequest,
    db: Session = Depends(get_db),
    telegram: TelegramService = Depends(get_telegram_service),
):
    """Payment confirmed by the bot builder."""
    try:
        user, old_status = confirm_subscriber_payment(
            db,
            request.subscriber_id,
            action=request.action,
            amount=request.amount,
            currency=request.currency,
            payload=request.model_dump(mode="json"),
        )
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    db.commit()
    sent = send_payment_confirmation(telegram, user)

    return SubscriberResponse(
        success=True,
        user_id=user.id,
        subscriber_id=user.telegram_chat_id,
        status=user.status,
        old_status=old_status,
        confirmation_sent=sent,
        message="Payment recorded",
    )


@router.post("/register", response_model=SubscriberResponse)
def handle_register(request: RegisterRequest, db: Session = Depends(get_db)):
    try:
        user = register_subscriber(db, request.subscriber_id, username=request.username, name=request.name)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    db.commit()

    return SubscriberResponse(
        success=True,
        user_id=user.id,
        subscriber_id=user.telegram_chat_id,
        status=user.status,
        message="Subscriber registered",
    )


@router.post("/update-status", response_model=SubscriberResponse)
def handle_update_status(request: UpdateStatusRequest, db: Session = Depends(get_db)):
    try:
        user, old_status = update_subscriber_status(db, request.subscriber_id, request.status)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    db.commit()

    return SubscriberResponse(
        success=True,
        user_id=user.id,
        subscriber_id=user.telegram_chat_id,
        status=user.status,
        old_status=old_status,
        message="Status updated",
    )
