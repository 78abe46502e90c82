from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from screener.llm import InterviewOracle
from screener.orchestrator import InterviewOrchestrator
from screener.schemas import TIME_LIMITS, ContactInfo, Question
from screener.session import SessionController
from screener.store import SessionStore


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_questions(levels=("easy", "easy", "medium", "medium", "hard", "hard")):
    return [
        Question(id=i, text=f"Question {i}", level=level, time_limit=TIME_LIMITS[level])
        for i, level in enumerate(levels, start=1)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "session_store.json")


@pytest.fixture
def controller(store, clock):
    return SessionController(store, clock=clock)


@pytest.fixture
def contact():
    return ContactInfo(name="Jane Doe", email="Not Found", phone="555-1234")


@pytest.fixture
def oracle():
    return AsyncMock(spec=InterviewOracle)


@pytest_asyncio.fixture
async def orchestrator(controller, oracle):
    orch = InterviewOrchestrator(
        controller,
        oracle,
        extractor=lambda content, mime: content.decode(),
        tick_interval=3600,
    )
    yield orch
    orch.timer.stop()
