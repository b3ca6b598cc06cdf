import random
import threading

import structlog
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from mathquest.config import Settings
from mathquest.database import build_engine
from mathquest.models.cached_problem import CacheBase, CachedProblem

logger = structlog.get_logger()


class ProblemCache:
    """Previously generated problems, sampled by (topic, difficulty)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str) -> "ProblemCache":
        """Build the store without connecting. The first call that reaches it creates the table."""
        return cls(build_engine(url))

    def _ensure_schema(self) -> None:
        # Retried on every call until the store has been reached once
        if self._schema_ready:
            return
        with self._schema_lock:
            if not self._schema_ready:
                CacheBase.metadata.create_all(bind=self._engine)
                self._schema_ready = True

    def sample(self, topic: str, difficulty: str, rng: random.Random) -> str | None:
        """Pick one matching problem uniformly at random, or None if there are none."""
        self._ensure_schema()
        criteria = (CachedProblem.topic == topic, CachedProblem.difficulty == difficulty)
        with self._sessions() as session:
            count = session.scalar(select(func.count()).select_from(CachedProblem).where(*criteria))
            if not count:
                return None
            offset = rng.randrange(count)
            return session.scalar(
                select(CachedProblem.raw_text)
                .where(*criteria)
                .order_by(CachedProblem.created_at, CachedProblem.id)
                .offset(offset)
                .limit(1)
            )

    def add(self, topic: str, difficulty: str, raw_text: str, source_identity: str | None) -> None:
        self._ensure_schema()
        with self._sessions() as session:
            session.add(
                CachedProblem(
                    topic=topic,
                    difficulty=difficulty,
                    raw_text=raw_text,
                    source_identity=source_identity,
                )
            )
            session.commit()

    def count(self) -> int:
        self._ensure_schema()
        with self._sessions() as session:
            return session.scalar(select(func.count()).select_from(CachedProblem)) or 0


def build_problem_cache(config: Settings) -> ProblemCache | None:
    """
    Set up the configured cache store. None when disabled or the URL is invalid.

    Nothing connects here: an unreachable store is retried on each call, so
    caching resumes once it comes back.
    """
    if not config.problem_cache_url:
        logger.info("problem_cache_disabled")
        return None
    try:
        cache = ProblemCache.from_url(config.problem_cache_url)
    except SQLAlchemyError as e:
        logger.error("problem_cache_misconfigured", error=str(e))
        return None
    logger.info("problem_cache_configured")
    return cache
