from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import DailySummary
from app.services.ai_service import summarize_turns
from app.services.history_service import clear_turns, get_turns_for_summary, list_active_chats, prune_expired_turns
from app.services.llm import LLMProvider

logger = get_logger("summary_service")


def get_last_summary(db: Session, chat_id: str) -> Optional[str]:
    row = (
        db.query(DailySummary)
        .filter(DailySummary.chat_id == str(chat_id))
        .order_by(DailySummary.summary_date.desc())
        .first()
    )
    return row.summary if row else None


def save_summary(db: Session, chat_id: str, summary: str, summary_date: Optional[date] = None) -> DailySummary:
    """Insert or overwrite the summary for a chat and day."""
    summary_date = summary_date or datetime.now(timezone.utc).date()
    row = (
        db.query(DailySummary)
        .filter(DailySummary.chat_id == str(chat_id), DailySummary.summary_date == summary_date)
        .first()
    )
    now = datetime.now(timezone.utc)
    if row:
        row.summary = summary
        row.created_at = now
    else:
        row = DailySummary(chat_id=str(chat_id), summary_date=summary_date, summary=summary, created_at=now)
        db.add(row)
    db.flush()
    return row


def summarize_chat(db: Session, chat_id: str, provider: Optional[LLMProvider] = None) -> bool:
    """Summarize stored turns of one chat, then drop them. Returns True if a summary was saved."""
    turns = get_turns_for_summary(db, chat_id)
    if not turns:
        return False

    result = summarize_turns([{"role": t.role, "content": t.content} for t in turns], provider=provider)
    if not result.ok:
        logger.error(
            "Summary generation failed",
            extra={"context": {"chat_id": chat_id, "error": result.error}},
        )
        return False

    save_summary(db, chat_id, result.value)
    # Turns appended while the LLM was working have larger ids and survive
    clear_turns(db, chat_id, up_to_id=turns[-1].id)
    db.commit()
    return True


def generate_daily_summaries(db: Session, provider: Optional[LLMProvider] = None) -> dict:
    """Summarize every chat with recent turns. Errors are logged per chat."""
    summarized = []
    failed = []

    for chat_id in list_active_chats(db):
        try:
            if summarize_chat(db, chat_id, provider=provider):
                summarized.append(chat_id)
                logger.info(f"Summary generated and saved for chat_id: {chat_id}")
        except SQLAlchemyError as e:
            db.rollback()
            failed.append(chat_id)
            logger.error(f"Error saving summary for chat {chat_id}: {e}")

    try:
        pruned = prune_expired_turns(db)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        pruned = 0
        logger.error(f"Error pruning expired turns: {e}")

    return {
        "summarized": summarized,
        "failed": failed,
        "pruned": pruned,
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }
