from typing import Optional, Union

from pydantic import BaseModel


class ChatMessageBody(BaseModel):
    text: Optional[str] = None


class ChatRequest(BaseModel):
    # Plain string from the web widget, {"text": ...} from the bot builder
    message: Union[str, ChatMessageBody, None] = None

    def resolved_text(self) -> str:
        if isinstance(self.message, ChatMessageBody):
            return (self.message.text or "").strip()
        return (self.message or "").strip()


class ChatResponse(BaseModel):
    reply: str


class ChatErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
