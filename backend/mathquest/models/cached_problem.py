import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class CacheBase(DeclarativeBase):
    """Metadata for the problem cache store, which lives outside the main database."""


class CachedProblem(CacheBase):
    """A previously generated problem. Written once, never updated."""

    __tablename__ = "cached_problems"
    __table_args__ = (Index("ix_cached_problems_topic_difficulty", "topic", "difficulty"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    topic: Mapped[str] = mapped_column(String(100), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(15), nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    source_identity: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )
