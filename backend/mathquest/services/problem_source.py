"""
Per-request choice between a cached problem and a freshly generated one.

A cache read is attempted only when the cache store is available, both topic
and difficulty were given, and a fresh draw from the random source falls
below the cache probability. Anything else, including a cache error or an
empty match, goes to the generation backend. Generation failures are never
papered over with cached text.
"""

import random
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from mathquest.config import Settings, settings
from mathquest.logging_config import fingerprint
from mathquest.services.generation_service import ProblemGenerator
from mathquest.services.problem_cache import ProblemCache, build_problem_cache

logger = structlog.get_logger()

ORIGIN_CACHE = "cache"
ORIGIN_AI = "ai"


@dataclass(frozen=True)
class SourcedProblem:
    text: str
    origin: str


class ProblemSourcer:
    def __init__(
        self,
        generator: ProblemGenerator,
        cache: ProblemCache | None = None,
        cache_probability: float = 0.25,
        rng: random.Random | None = None,
    ) -> None:
        self.generator = generator
        self.cache = cache
        self.cache_probability = cache_probability
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def from_settings(cls, config: Settings) -> "ProblemSourcer":
        return cls(
            generator=ProblemGenerator.from_settings(config),
            cache=build_problem_cache(config),
            cache_probability=config.cache_probability,
        )

    def _wants_cache(self, topic: str | None, difficulty: str | None) -> bool:
        if self.cache is None or not topic or not difficulty:
            return False
        return self._rng.random() < self.cache_probability

    def _read_cache(self, topic: str, difficulty: str) -> str | None:
        try:
            return self.cache.sample(topic, difficulty, self._rng)
        except SQLAlchemyError as e:
            logger.warning("problem_cache_read_failed", error=str(e))
            return None

    async def source(
        self,
        prompt: str,
        topic: str | None = None,
        difficulty: str | None = None,
        identity: str | None = None,
    ) -> SourcedProblem:
        """Return problem text and where it came from. Raises GenerationFailed."""
        if self._wants_cache(topic, difficulty):
            text = await run_in_threadpool(self._read_cache, topic, difficulty)
            if text:
                logger.info("problem_cache_hit", topic=topic, difficulty=difficulty)
                return SourcedProblem(text=text, origin=ORIGIN_CACHE)
            logger.info("problem_cache_miss", topic=topic, difficulty=difficulty)

        text = await self.generator.generate(prompt)
        logger.info(
            "problem_generated",
            topic=topic,
            difficulty=difficulty,
            identity=fingerprint(identity) if identity else None,
        )
        return SourcedProblem(text=text, origin=ORIGIN_AI)

    def should_write_back(
        self, problem: SourcedProblem, topic: str | None, difficulty: str | None
    ) -> bool:
        return (
            problem.origin == ORIGIN_AI
            and self.cache is not None
            and bool(topic)
            and bool(difficulty)
        )

    def write_back(self, topic: str, difficulty: str, text: str, identity: str | None) -> None:
        """Store a generated problem. Runs after the response; failures are only logged."""
        try:
            self.cache.add(topic, difficulty, text, identity)
        except SQLAlchemyError as e:
            logger.error("problem_cache_write_failed", topic=topic, difficulty=difficulty, error=str(e))
            return
        logger.info("problem_cached", topic=topic, difficulty=difficulty)


_sourcer: ProblemSourcer | None = None


def get_problem_sourcer() -> ProblemSourcer:
    """Dependency returning the process-wide sourcer, built on first use."""
    global _sourcer
    if _sourcer is None:
        _sourcer = ProblemSourcer.from_settings(settings)
    return _sourcer
