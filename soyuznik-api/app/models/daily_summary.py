from sqlalchemy import Column, Date, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP

from app.database import Base


class DailySummary(Base):
    __tablename__ = "daily_summaries"

    chat_id = Column(Text, primary_key=True)
    summary_date = Column(Date, primary_key=True)
    summary = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
