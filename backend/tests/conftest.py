import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mathquest.main as main_module
from mathquest.database import Base, get_db
from mathquest.main import app
from mathquest.middleware.rate_limit import limiter
from mathquest.models.cached_problem import CacheBase
from mathquest.services.generation_service import GenerationFailed
from mathquest.services.problem_cache import ProblemCache
from mathquest.services.problem_source import ProblemSourcer, get_problem_sourcer
from mathquest.services.quota_service import QuotaLedger, get_quota_ledger

OWNER_IP = "203.0.113.1"


def memory_engine():
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubGenerator:
    """Stands in for the Gemini client."""

    def __init__(self, text: str = "What is 2 + 2?") -> None:
        self.text = text
        self.error: Exception | None = None
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text

    def fail_with(self, message: str = "Generation backend timed out") -> None:
        self.error = GenerationFailed(message)


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = memory_engine()
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def problem_cache():
    """An in-memory cache store."""
    engine = memory_engine()
    CacheBase.metadata.create_all(bind=engine)
    yield ProblemCache(engine)
    CacheBase.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return QuotaLedger(
        limit=10,
        window_seconds=8 * 3600,
        spacing_seconds=60,
        owner_identities={OWNER_IP},
        clock=clock,
    )


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def sourcer(generator):
    """Sourcer with no cache store: every problem is generated."""
    return ProblemSourcer(generator=generator, cache=None, rng=random.Random(7))


@pytest.fixture
def client(db_session, ledger, sourcer):
    """Test client wired to the test database, ledger and sourcer, slowapi off."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quota_ledger] = lambda: ledger
    app.dependency_overrides[get_problem_sourcer] = lambda: sourcer

    limiter.enabled = False

    # check_database_tables() must look at the test database
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
    main_module.engine = original_engine
