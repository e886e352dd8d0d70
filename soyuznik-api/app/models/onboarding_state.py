from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from app.database import Base


class OnboardingState(Base):
    __tablename__ = "user_states"

    # One row per user while onboarding is in progress
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True)
    step = Column(Integer, nullable=False, default=1)
    updated_at = Column(TIMESTAMP(timezone=True))

    user = relationship("User", back_populates="onboarding_state")
