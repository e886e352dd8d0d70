from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import settings
from app.logging_config import get_logger
from app.schemas.chat import ChatErrorResponse, ChatRequest, ChatResponse
from app.services.ai_service import generate_single_reply, get_llm_provider
from app.services.llm import LLMProvider

logger = get_logger("chat")

router = APIRouter()

MSG_EMPTY = "Пустое сообщение"
MSG_SERVER_ERROR = "Ошибка на сервере"


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ChatErrorResponse}, 500: {"model": ChatErrorResponse}},
)
def handle_chat(request: ChatRequest, provider: LLMProvider = Depends(get_llm_provider)):
    """Single-turn proxy to the LLM for the web widget and the bot builder."""
    text = request.resolved_text()
    if not text:
        return JSONResponse(status_code=400, content=ChatErrorResponse(error=MSG_EMPTY).model_dump(exclude_none=True))

    result = generate_single_reply(text, provider=provider)
    if not result.ok:
        logger.error("Chat completion failed", extra={"context": {"error": result.error}})
        error = ChatErrorResponse(error=MSG_SERVER_ERROR, detail=result.error if settings.debug else None)
        return JSONResponse(status_code=500, content=error.model_dump(exclude_none=True))

    return ChatResponse(reply=result.value)
