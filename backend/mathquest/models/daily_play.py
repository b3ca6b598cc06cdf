from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from mathquest.database import Base


class DailyPlay(Base):
    """One row per (identity, daily seed). The composite key is what stops replays."""

    __tablename__ = "ip_play_limits"

    ip_address: Mapped[str] = mapped_column(String(45), primary_key=True)
    daily_seed: Mapped[str] = mapped_column(String(50), primary_key=True)

    play_date: Mapped[date] = mapped_column(
        Date, default=lambda: datetime.now(UTC).date(), nullable=False
    )
    last_played_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )
    score_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
