from __future__ import annotations

from datetime import datetime, timezone
import random

import pytest

from review_app.core.models import Question, QuestionDraft
from review_app.core.services.question_bank import QuestionBank
from review_app.core.services.result_log import ResultLog
from review_app.core.services.test_session import TestSession
from review_app.core.storage import InMemoryBackend, SnapshotRepository
from review_app.core.study_manager import StudyManager


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_question(
    question_id: str,
    correct: str = "A",
    subject_id: str = "1",
    chapter_id: str = "1",
    type_id: str = "1",
    text: str | None = None,
) -> Question:
    return Question(
        id=question_id,
        text=text or f"Question {question_id}",
        options={"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"},
        correct_answer=correct,
        subject_id=subject_id,
        chapter_id=chapter_id,
        type_id=type_id,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def make_draft(**overrides) -> QuestionDraft:
    fields = dict(
        text="What is 2 + 2?",
        options={"A": "3", "B": "4", "C": "5", "D": "22"},
        correct_answer="B",
        subject_id="1",
        chapter_id="1",
        type_id="1",
    )
    fields.update(overrides)
    return QuestionDraft(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bank() -> QuestionBank:
    return QuestionBank([make_question(f"q{i}") for i in range(1, 6)])


@pytest.fixture
def results() -> ResultLog:
    return ResultLog()


@pytest.fixture
def session(bank: QuestionBank, results: ResultLog, clock: FakeClock) -> TestSession:
    return TestSession(bank, results, rng=random.Random(7), clock=clock)


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def manager(backend: InMemoryBackend, clock: FakeClock) -> StudyManager:
    return StudyManager(SnapshotRepository(backend), rng=random.Random(3), clock=clock)
