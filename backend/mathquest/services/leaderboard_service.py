import enum
import threading
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mathquest.config import settings
from mathquest.models.daily_play import DailyPlay
from mathquest.models.leaderboard import LeaderboardEntry

logger = structlog.get_logger()

# Merges for the same (username, difficulty) always land on the same lock
_LOCK_STRIPES = 64
_pair_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]


class RejectionReason(str, enum.Enum):
    INVALID_OR_SUSPICIOUS_SCORE = "invalid_or_suspicious_score"
    DUPLICATE_DAILY_SUBMISSION = "duplicate_daily_submission"


class ScoreRejected(ValueError):
    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def pair_lock(username: str, difficulty: str) -> threading.Lock:
    return _pair_locks[hash((username, difficulty)) % _LOCK_STRIPES]


def score_cap(difficulty: str) -> int:
    """Highest plausible score for one game at this difficulty."""
    return settings.difficulty_score_caps.get(difficulty, settings.default_score_cap)


def validate_submission(username, score, difficulty) -> tuple[str, int]:
    """
    Check a submission is plausible.

    Returns the cleaned username (trimmed, truncated) and the score as an int.
    Raises ScoreRejected otherwise.
    """

    def reject(message: str) -> ScoreRejected:
        return ScoreRejected(RejectionReason.INVALID_OR_SUSPICIOUS_SCORE, message)

    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise reject("Score must be a number")
    if isinstance(score, float) and not score.is_integer():
        raise reject("Score must be a whole number")
    if not isinstance(username, str) or len(username.strip()) < settings.username_min_length:
        raise reject(f"Username must be {settings.username_min_length}+ characters")
    if not isinstance(difficulty, str) or not difficulty.strip():
        raise reject("Difficulty is required")
    if score <= 0:
        raise reject("Score must be greater than zero")
    cap = score_cap(difficulty)
    if score > cap:
        raise reject(f"Score exceeds the maximum of {cap} for {difficulty}")

    return username.strip()[: settings.username_max_length], int(score)


def claim_daily_submission(db: Session, identity: str, daily_seed: str) -> None:
    """
    Mark the identity's daily play as scored, within the caller's transaction.

    A play that was already scored means this is a second submission for the
    same daily challenge. A missing record is created already marked.
    """
    now = _utcnow()
    play = (DailyPlay.ip_address == identity, DailyPlay.daily_seed == daily_seed)

    result = db.execute(
        update(DailyPlay)
        .where(*play, DailyPlay.score_submitted_at.is_(None))
        .values(score_submitted_at=now, last_played_at=now)
    )
    if result.rowcount:
        return

    duplicate = ScoreRejected(
        RejectionReason.DUPLICATE_DAILY_SUBMISSION,
        "A score has already been submitted for today's challenge",
    )
    if db.execute(select(DailyPlay.ip_address).where(*play)).first() is not None:
        raise duplicate

    try:
        db.execute(
            insert(DailyPlay).values(
                ip_address=identity,
                daily_seed=daily_seed,
                score_submitted_at=now,
                last_played_at=now,
            )
        )
    except IntegrityError:
        db.rollback()
        raise duplicate


def merge_score(db: Session, username: str, difficulty: str, score: int) -> LeaderboardEntry:
    """
    Fold a score into the player's running total for a difficulty.

    All rows for the pair collapse into the earliest one. Does not commit.
    """
    rows = (
        db.execute(
            select(LeaderboardEntry)
            .where(LeaderboardEntry.username == username, LeaderboardEntry.difficulty == difficulty)
            .order_by(LeaderboardEntry.created_at, LeaderboardEntry.id)
            .with_for_update()
        )
        .scalars()
        .all()
    )

    if not rows:
        entry = LeaderboardEntry(username=username, difficulty=difficulty, score=score, games_played=1)
        db.add(entry)
        db.flush()
        return entry

    canonical, *fragments = rows
    canonical.score = sum(row.score for row in rows) + score
    canonical.games_played = sum(row.games_played for row in rows) + 1
    canonical.updated_at = _utcnow()
    for fragment in fragments:
        db.delete(fragment)

    if fragments:
        logger.info(
            "leaderboard_rows_collapsed",
            difficulty=difficulty,
            removed=len(fragments),
        )
    db.flush()
    return canonical


def submit_score(
    db: Session,
    username,
    score,
    difficulty,
    identity: str,
    daily_seed: str | None = None,
    is_owner: bool = False,
) -> LeaderboardEntry:
    """
    Validate, re-check the daily ledger, and merge a score in one transaction.

    Raises ScoreRejected for implausible scores and duplicate daily submissions,
    SQLAlchemyError when storage fails. Nothing is written in either case.
    """
    clean_username, points = validate_submission(username, score, difficulty)

    with pair_lock(clean_username, difficulty):
        try:
            if daily_seed and not is_owner:
                claim_daily_submission(db, identity, daily_seed)
            entry = merge_score(db, clean_username, difficulty, points)
            db.commit()
        except (ScoreRejected, SQLAlchemyError):
            db.rollback()
            raise

    db.refresh(entry)
    return entry


def get_top_players(db: Session, limit: int | None = None) -> list[dict]:
    """Players ranked by total score across all their rows and difficulties."""
    total = func.sum(LeaderboardEntry.score)
    games = func.sum(LeaderboardEntry.games_played)
    rows = db.execute(
        select(LeaderboardEntry.username, total.label("score"), games.label("games_played"))
        .group_by(LeaderboardEntry.username)
        .order_by(total.desc(), func.min(LeaderboardEntry.created_at))
        .limit(limit or settings.leaderboard_top_limit)
    ).all()
    return [
        {"username": row.username, "score": int(row.score), "games_played": int(row.games_played)}
        for row in rows
    ]
