from app.schemas.bothelp import PaymentCallbackRequest, RegisterRequest, SubscriberResponse, UpdateStatusRequest
from app.schemas.chat import ChatErrorResponse, ChatMessageBody, ChatRequest, ChatResponse
from app.schemas.status import DebugResponse, StatusResponse
from app.schemas.telegram import TelegramMessage, TelegramUpdate, TelegramWebhookResponse

__all__ = [
    "ChatRequest",
    "ChatMessageBody",
    "ChatResponse",
    "ChatErrorResponse",
    "PaymentCallbackRequest",
    "RegisterRequest",
    "UpdateStatusRequest",
    "SubscriberResponse",
    "StatusResponse",
    "DebugResponse",
    "TelegramMessage",
    "TelegramUpdate",
    "TelegramWebhookResponse",
]
