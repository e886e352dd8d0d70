from app.models.chat_message import ChatMessage
from app.models.daily_summary import DailySummary
from app.models.onboarding_state import OnboardingState
from app.models.payment import Payment
from app.models.user import User

__all__ = [
    "User",
    "OnboardingState",
    "Payment",
    "ChatMessage",
    "DailySummary",
]
