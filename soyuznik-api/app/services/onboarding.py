"""Onboarding questionnaire: the three prompts that precede free chat."""

from enum import IntEnum
from typing import Optional

START_COMMAND = "/start"


class OnboardingStep(IntEnum):
    NAME = 1
    PERSONA = 2
    PRIORITY = 3


# User attribute filled by the answer to each step
STEP_FIELDS = {
    OnboardingStep.NAME: "custom_name",
    OnboardingStep.PERSONA: "persona",
    OnboardingStep.PRIORITY: "priority",
}

MSG_WELCOME = "🎯 Добро пожаловать!\n1️⃣ Как мне к вам обращаться?"
MSG_ASK_PERSONA = "2️⃣ Кто для вас союзник?"
MSG_ASK_PRIORITY = "3️⃣ Что для вас сейчас важно?"
MSG_DONE = "💡 Отлично! Теперь я вас знаю. Можете задавать любые вопросы, и я помогу!"

# Prompt sent after the answer to a step has been stored
NEXT_PROMPTS = {
    OnboardingStep.NAME: MSG_ASK_PERSONA,
    OnboardingStep.PERSONA: MSG_ASK_PRIORITY,
    OnboardingStep.PRIORITY: MSG_DONE,
}


def parse_step(value) -> Optional[OnboardingStep]:
    """Stored step as enum, or None when it is outside 1..3."""
    try:
        return OnboardingStep(value)
    except (ValueError, TypeError):
        return None


def next_step(step: OnboardingStep) -> Optional[OnboardingStep]:
    """Step that follows, None after the last one."""
    if step == OnboardingStep.PRIORITY:
        return None
    return OnboardingStep(step + 1)


def is_command(text: str) -> bool:
    return text.strip().startswith("/")


def is_start_command(text: str) -> bool:
    """Match /start, /start <payload> and /start@botname."""
    parts = text.strip().split()
    if not parts:
        return False
    return parts[0].split("@", 1)[0].lower() == START_COMMAND
