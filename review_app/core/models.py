"""Domain models for the review application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class Subject:
    """Top level of the category tree (e.g. Mathematics)."""

    id: str
    name: str
    color: str


@dataclass(slots=True)
class Chapter:
    id: str
    name: str
    subject_id: str


@dataclass(slots=True)
class QuestionType:
    """Question types are scoped to a chapter."""

    id: str
    name: str
    chapter_id: str


@dataclass(slots=True)
class QuestionDraft:
    """User-supplied question fields before validation and id assignment."""

    text: str
    options: dict[str, str]
    correct_answer: str
    subject_id: str
    chapter_id: str
    type_id: str
    explanation: str | None = None
    explanation_image_url: str | None = None
    references: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Question:
    """Multiple-choice question with exactly four labelled options (A-D)."""

    id: str
    text: str
    options: dict[str, str]
    correct_answer: str
    subject_id: str
    chapter_id: str
    type_id: str
    created_at: datetime
    explanation: str | None = None
    explanation_image_url: str | None = None
    references: list[str] = field(default_factory=list)
    times_answered: int = 0
    times_correct: int = 0


@dataclass(frozen=True, slots=True)
class TestConfiguration:
    """Settings chosen before a mock test starts. Empty id filters mean "all"."""

    __test__ = False

    question_count: int
    subject_ids: tuple[str, ...] = ()
    chapter_ids: tuple[str, ...] = ()
    type_ids: tuple[str, ...] = ()
    time_limit_minutes: int | None = None


@dataclass(frozen=True, slots=True)
class TestAnswer:
    """Outcome for one question of a submitted test."""

    __test__ = False

    question_id: str
    selected_answer: str | None
    is_correct: bool
    time_taken: int


@dataclass(frozen=True, slots=True)
class TestResult:
    """Immutable record of a finished test. ``id`` is assigned by the result log."""

    __test__ = False

    date: datetime
    config: TestConfiguration
    answers: tuple[TestAnswer, ...]
    score: int
    total_questions: int
    time_taken: int
    id: str = ""

    @property
    def percentage(self) -> float:
        if not self.total_questions:
            return 0.0
        return self.score / self.total_questions * 100


_GRADE_BANDS: tuple[tuple[int, str], ...] = (
    (90, "Excellent!"),
    (80, "Great Job!"),
    (70, "Good Work!"),
    (60, "Keep Practicing"),
)


@dataclass(slots=True)
class TestReview:
    """Hand-off from a submitted session to whatever shows the results."""

    __test__ = False

    result: TestResult
    questions: list[Question]

    @property
    def percentage(self) -> int:
        return round(self.result.percentage)

    @property
    def grade(self) -> str:
        for threshold, label in _GRADE_BANDS:
            if self.percentage >= threshold:
                return label
        return "Need Improvement"


@dataclass(slots=True)
class AppData:
    """Everything the application persists, saved as one snapshot."""

    subjects: list[Subject] = field(default_factory=list)
    chapters: list[Chapter] = field(default_factory=list)
    question_types: list[QuestionType] = field(default_factory=list)
    questions: list[Question] = field(default_factory=list)
    test_results: list[TestResult] = field(default_factory=list)
