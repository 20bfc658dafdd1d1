"""
Shared fixtures.

The environment is pinned before anything under tradesight is imported:
settings are cached on first use and the module-level engine is built from
them, so the whole suite runs against one in-memory SQLite database with
every optional provider key disabled.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
for _key in ("GEMINI_API_KEY", "EXA_API_KEY", "TRADERMADE_API_KEY", "COINMARKETCAP_API_KEY", "NEWSDATA_API_KEY"):
    os.environ[_key] = ""

from typing import List, Sequence, Union  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tradesight.core.retry import RetryScheduler  # noqa: E402
from tradesight.database.session import build_engine  # noqa: E402
from tradesight.models import Base  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================


class FakeModel:
    """GenerativeModel stand-in: replays scripted replies or raises scripted errors."""

    def __init__(self, *script: Union[str, BaseException]):
        self.script: List[Union[str, BaseException]] = list(script)
        self.calls: List[Sequence] = []

    async def generate(self, parts):
        self.calls.append(list(parts))
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        return step


class RateLimited(Exception):
    """Looks like a google-genai APIError for HTTP 429."""

    def __init__(self, message: str = "Resource has been exhausted (e.g. check quota)."):
        super().__init__(message)
        self.code = 429
        self.status = "RESOURCE_EXHAUSTED"


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def fast_retry(sleeper):
    """Default 3-attempt policy, no real sleeping, zero jitter."""
    return RetryScheduler(sleep=sleeper, jitter=lambda low, high: 0.0)


@pytest.fixture
def db_session():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
