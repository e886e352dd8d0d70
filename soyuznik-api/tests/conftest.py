from types import SimpleNamespace
from typing import List, Optional
from unittest.mock import Mock
from uuid import uuid4

import pytest

from app.services.llm import LLMProvider, LLMProviderError, LLMResponse


class StubProvider(LLMProvider):
    """Returns a fixed reply and records every call."""

    def __init__(self, reply: str = "hi", error: Optional[str] = None):
        self.reply = reply
        self.error = error
        self.calls: List[dict] = []

    def generate(self, messages, model=None, temperature=0.7, max_tokens=500, timeout_seconds=None):
        self.calls.append({"messages": messages, "model": model, "max_tokens": max_tokens})
        if self.error:
            raise LLMProviderError(self.error)
        return LLMResponse(content=self.reply, model=model or "stub")


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def telegram():
    """Mock bot client that reports every send as delivered."""
    service = Mock()
    service.send_message.return_value = {"ok": True, "result": {"message_id": 1}}
    service.get_me.return_value = {"ok": True, "result": {"username": "gpt_soyuznik_chat_bot"}}
    return service


@pytest.fixture
def stub_provider():
    return StubProvider()


def make_user(status="paid", chat_id="555", **fields):
    values = {
        "id": uuid4(),
        "telegram_chat_id": chat_id,
        "username": None,
        "custom_name": None,
        "persona": None,
        "priority": None,
        "status": status,
        "paid_at": None,
        "chat_started_at": None,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def make_update_payload(text=None, chat_id=555, update_id=1000, **message_fields):
    message = {
        "message_id": 10,
        "date": 1702000000,
        "chat": {"id": chat_id, "type": "private"},
        "from": {"id": chat_id, "is_bot": False, "first_name": "Аня"},
    }
    if text is not None:
        message["text"] = text
    message.update(message_fields)
    return {"update_id": update_id, "message": message}
