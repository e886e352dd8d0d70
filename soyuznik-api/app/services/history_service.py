"""Conversation turns kept in the database for prompt context.

Each chat keeps at most ``history_max_messages`` turns; older ones are trimmed
on append. Turns older than ``history_ttl_hours`` are ignored when a prompt is
built and removed by the summary worker.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models import ChatMessage


def _expiry_cutoff(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(hours=settings.history_ttl_hours)


def append_turn(db: Session, chat_id: str, role: str, content: str) -> ChatMessage:
    """Store one turn and trim the chat down to the configured cap."""
    turn = ChatMessage(
        chat_id=str(chat_id),
        role=role,
        content=content,
        created_at=datetime.now(timezone.utc),
    )
    db.add(turn)
    db.flush()
    trim_history(db, chat_id)
    return turn


def trim_history(db: Session, chat_id: str, limit: Optional[int] = None) -> int:
    """Delete turns beyond the newest ``limit`` ones. Returns deleted count."""
    limit = limit or settings.history_max_messages
    keep_ids = (
        db.query(ChatMessage.id)
        .filter(ChatMessage.chat_id == str(chat_id))
        .order_by(ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    if len(keep_ids) < limit:
        return 0

    oldest_kept = min(row[0] for row in keep_ids)
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == str(chat_id), ChatMessage.id < oldest_kept)
        .delete(synchronize_session=False)
    )


def get_recent_turns(db: Session, chat_id: str, limit: Optional[int] = None) -> List[dict]:
    """Get unexpired turns in chronological order, formatted for the LLM."""
    limit = limit or settings.history_max_messages
    rows = (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == str(chat_id), ChatMessage.created_at >= _expiry_cutoff())
        .order_by(ChatMessage.id.desc())
        .limit(limit)
        .all()
    )

    history = []
    for row in reversed(rows):
        role = "assistant" if row.role == "assistant" else "user"
        history.append({"role": role, "content": row.content})
    return history


def get_turns_for_summary(db: Session, chat_id: str) -> List[ChatMessage]:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == str(chat_id), ChatMessage.created_at >= _expiry_cutoff())
        .order_by(ChatMessage.id.asc())
        .all()
    )


def list_active_chats(db: Session) -> List[str]:
    """Chat ids that have at least one unexpired turn."""
    rows = (
        db.query(ChatMessage.chat_id, func.count(ChatMessage.id))
        .filter(ChatMessage.created_at >= _expiry_cutoff())
        .group_by(ChatMessage.chat_id)
        .all()
    )
    return [chat_id for chat_id, count in rows if count > 0]


def clear_turns(db: Session, chat_id: str, up_to_id: int) -> int:
    """Delete turns of a chat with id <= up_to_id; newer turns are kept."""
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == str(chat_id), ChatMessage.id <= up_to_id)
        .delete(synchronize_session=False)
    )


def prune_expired_turns(db: Session) -> int:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.created_at < _expiry_cutoff())
        .delete(synchronize_session=False)
    )
