from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from app.services.access_status import AccessStatus


def _coerce_subscriber_id(value: object) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class PaymentCallbackRequest(BaseModel):
    subscriber_id: Optional[str] = None
    action: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    @field_validator("subscriber_id", mode="before")
    @classmethod
    def normalize_subscriber_id(cls, value: object) -> Optional[str]:
        return _coerce_subscriber_id(value)


class RegisterRequest(BaseModel):
    subscriber_id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None

    @field_validator("subscriber_id", mode="before")
    @classmethod
    def normalize_subscriber_id(cls, value: object) -> Optional[str]:
        return _coerce_subscriber_id(value)


class UpdateStatusRequest(BaseModel):
    subscriber_id: Optional[str] = None
    status: AccessStatus

    @field_validator("subscriber_id", mode="before")
    @classmethod
    def normalize_subscriber_id(cls, value: object) -> Optional[str]:
        return _coerce_subscriber_id(value)


class SubscriberResponse(BaseModel):
    success: bool
    user_id: UUID
    subscriber_id: str
    status: str
    old_status: Optional[str] = None
    confirmation_sent: Optional[bool] = None
    message: Optional[str] = None
