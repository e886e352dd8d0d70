"""Validation of raw Telegram update envelopes.

Used by the webhook endpoint for pushed bodies and by the poller for pulled
updates, so both sources reject the same malformed input.
"""

import json

from pydantic import ValidationError

from app.schemas.telegram import TelegramUpdate


class WebhookBodyError(Exception):
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EmptyBodyError(WebhookBodyError):
    def __init__(self, message: str = "Empty request body"):
        super().__init__(message)


class MalformedJsonError(WebhookBodyError):
    def __init__(self, message: str = "Invalid JSON"):
        super().__init__(message)


class UnrecognizedEventError(WebhookBodyError):
    def __init__(self, message: str = "Invalid Telegram update format"):
        super().__init__(message)


class BodyTooLargeError(WebhookBodyError):
    status_code = 413

    def __init__(self, message: str = "Request body too large"):
        super().__init__(message)


def decode_body(raw: bytes) -> object:
    """Turn raw bytes into a JSON value, rejecting anything that is not an object or array."""
    if not raw:
        raise EmptyBodyError()

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedJsonError()

    if not text.strip() or text == "]" or not (text.startswith("{") or text.startswith("[")):
        raise MalformedJsonError("Invalid JSON format")

    try:
        return json.loads(text)
    except ValueError:
        raise MalformedJsonError()


def parse_update(payload: object) -> TelegramUpdate:
    """Validate a decoded envelope. Raises UnrecognizedEventError."""
    if not isinstance(payload, dict) or not payload.get("update_id"):
        raise UnrecognizedEventError()

    try:
        return TelegramUpdate(**payload)
    except ValidationError:
        raise UnrecognizedEventError()


def parse_webhook_body(raw: bytes) -> TelegramUpdate:
    return parse_update(decode_body(raw))
