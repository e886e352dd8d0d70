import re
from typing import List, Optional

from app.config import settings
from app.logging_config import get_logger
from app.models import User
from app.services.llm import LLMProvider, LLMProviderError, OpenAIProvider
from app.services.result import AI_ERROR, Result

logger = get_logger("ai_service")

SYSTEM_PROMPT_DEFAULT = (
    "Ты эмпатичный союзник. Мы начинаем новый диалог, будь внимателен к эмоциям и запросам пользователя."
)
SYSTEM_PROMPT_WITH_SUMMARY = (
    "Ты эмпатичный союзник. Вчера в нашем диалоге: {summary}. "
    "Используй эту информацию, чтобы сделать диалог более тёплым и продолжительным."
)
SUMMARY_SYSTEM_PROMPT = (
    "Ты эмпатичный союзник, который делает краткую эмоциональную сводку диалога за день. "
    "Опиши ключевые темы, эмоции и выводы в 1-2 предложениях."
)
IMAGE_PROMPT = "Опиши это изображение."

# Questions the bot answers from the stored profile without calling the LLM
RECALL_PHRASES = {
    "custom_name": {
        "как меня зовут",
        "как мое имя",
        "как моё имя",
        "ты помнишь как меня зовут",
        "помнишь как меня зовут",
    },
    "persona": {
        "кто мой союзник",
        "кто для меня союзник",
        "кто ты для меня",
    },
    "priority": {
        "что для меня важно",
        "что мне сейчас важно",
        "что для меня сейчас важно",
    },
}

RECALL_TEMPLATES = {
    "custom_name": "Вас зовут {value} 😊",
    "persona": "Для вас союзник: {value}.",
    "priority": "Вы говорили, что для вас сейчас важно: {value}.",
}
RECALL_UNKNOWN = "Я пока этого не знаю. Отправьте /start, чтобы познакомиться заново."

_llm_provider: Optional[LLMProvider] = None


def get_llm_provider() -> LLMProvider:
    """Get or create LLM provider instance."""
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = OpenAIProvider(
            api_key=settings.openai_api_key,
            default_model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    return _llm_provider


def normalize_for_matching(text: str) -> str:
    """Normalize text for matching short phrases (casefold + trim punctuation)."""
    if not text:
        return ""

    normalized = text.strip().casefold().replace("ё", "е")
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip()


def match_recall_field(text: str) -> Optional[str]:
    """Return the profile field a recall question asks about, if any."""
    normalized = normalize_for_matching(text)
    if not normalized:
        return None
    for field, phrases in RECALL_PHRASES.items():
        if normalized in {normalize_for_matching(phrase) for phrase in phrases}:
            return field
    return None


def get_recall_reply(user: User, text: str) -> Optional[str]:
    """Canned reply with the stored value, or None if the text is not a recall question."""
    field = match_recall_field(text)
    if not field:
        return None
    value = getattr(user, field, None)
    if not value:
        return RECALL_UNKNOWN
    return RECALL_TEMPLATES[field].format(value=value)


def build_system_prompt(last_summary: Optional[str] = None) -> str:
    if last_summary:
        return SYSTEM_PROMPT_WITH_SUMMARY.format(summary=last_summary)
    return SYSTEM_PROMPT_DEFAULT


def _complete(
    messages: List[dict],
    max_tokens: int,
    provider: Optional[LLMProvider] = None,
    model: Optional[str] = None,
) -> Result[str]:
    provider = provider or get_llm_provider()
    try:
        response = provider.generate(messages=messages, model=model, max_tokens=max_tokens)
    except LLMProviderError as e:
        logger.error(f"LLM call failed: {e.message}")
        return Result.failure(e.message, AI_ERROR)
    return Result.success(response.content)


def generate_chat_reply(
    history: List[dict],
    last_summary: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    """Reply to the latest user turn using the recent conversation as context."""
    messages = [{"role": "system", "content": build_system_prompt(last_summary)}, *history]
    return _complete(messages, settings.chat_max_tokens, provider=provider)


def generate_single_reply(text: str, provider: Optional[LLMProvider] = None) -> Result[str]:
    """One-shot prompt with no system message and no history."""
    return _complete([{"role": "user", "content": text}], settings.chat_max_tokens, provider=provider)


def describe_image(
    image_url: str,
    history: List[dict],
    last_summary: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
) -> Result[str]:
    image_turn = {
        "role": "user",
        "content": [
            {"type": "text", "text": IMAGE_PROMPT},
            {"type": "image_url", "image_url": {"url": image_url}},
        ],
    }
    messages = [{"role": "system", "content": build_system_prompt(last_summary)}, *history, image_turn]
    return _complete(messages, settings.chat_max_tokens, provider=provider)


def summarize_turns(turns: List[dict], provider: Optional[LLMProvider] = None) -> Result[str]:
    """Short emotional summary of a day of conversation."""
    transcript = "\n".join(f"{turn['role']}: {turn['content']}" for turn in turns)
    messages = [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": transcript},
    ]
    return _complete(messages, settings.summary_max_tokens, provider=provider, model=settings.summary_model)
