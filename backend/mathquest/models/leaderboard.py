from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mathquest.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class LeaderboardEntry(Base):
    """
    Running total for one player at one difficulty.

    After a merge there is exactly one row per (username, difficulty). Older
    deployments inserted a row per game, so readers must still tolerate
    several rows for the same pair.
    """

    __tablename__ = "leaderboard"
    __table_args__ = (Index("ix_leaderboard_username_difficulty", "username", "difficulty"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(25), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(15), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
