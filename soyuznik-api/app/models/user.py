import uuid

from sqlalchemy import Column, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    telegram_chat_id = Column(Text, nullable=False, unique=True)
    username = Column(Text)
    custom_name = Column(Text)
    persona = Column(Text)
    priority = Column(Text)
    status = Column(Text, nullable=False, default="new")  # new, pending, paid, active
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    paid_at = Column(TIMESTAMP(timezone=True))
    chat_started_at = Column(TIMESTAMP(timezone=True))
    updated_at = Column(TIMESTAMP(timezone=True))

    onboarding_state = relationship("OnboardingState", back_populates="user", uselist=False)
    payments = relationship("Payment", back_populates="user")
