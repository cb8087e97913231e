"""Accuracy and score aggregation for the dashboard and statistics views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math
from typing import Iterable

from review_app.constants.test_constants import (
    SCORE_TREND_LIMIT,
    WEAK_CHAPTERS_LIMIT,
    WEAK_SUBJECTS_LIMIT,
)
from review_app.core.models import Chapter, Question, Subject, TestResult


@dataclass(slots=True)
class OverviewStats:
    """Headline numbers across all submitted tests."""

    total_tests: int
    total_questions: int
    average_score: int
    best_score: int
    total_time_seconds: int
    questions_answered: int

    @property
    def total_time_formatted(self) -> str:
        return format_duration(self.total_time_seconds)


@dataclass(slots=True)
class TrendPoint:
    label: str
    score: int
    date: datetime


@dataclass(slots=True)
class CategoryPerformance:
    """Aggregated answer counters for a subject or chapter."""

    id: str
    name: str
    answered: int
    correct: int
    accuracy: float
    question_count: int
    subject_name: str = ""


def accuracy(correct: int, answered: int) -> float:
    """Correct answers as a percentage of answered ones (0 when nothing answered)."""
    if answered <= 0:
        return 0.0
    return correct / answered * 100


def question_accuracy(question: Question) -> int | None:
    if question.times_answered == 0:
        return None
    return round(accuracy(question.times_correct, question.times_answered))


def _rounded(percent: float) -> int:
    # Half up, like the percentages shown next to each row.
    return math.floor(percent + 0.5)


def format_duration(seconds: int) -> str:
    if seconds > 3600:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
    return f"{seconds // 60}m"


def summarize(results: list[TestResult], questions: list[Question]) -> OverviewStats:
    total_tests = len(results)
    percentages = [r.percentage for r in results]
    return OverviewStats(
        total_tests=total_tests,
        total_questions=len(questions),
        average_score=round(sum(percentages) / total_tests) if total_tests else 0,
        best_score=round(max(percentages)) if percentages else 0,
        total_time_seconds=sum(r.time_taken for r in results),
        questions_answered=sum(r.total_questions for r in results),
    )


def score_trend(results: list[TestResult], limit: int = SCORE_TREND_LIMIT) -> list[TrendPoint]:
    recent = results[-limit:] if limit > 0 else []
    return [
        TrendPoint(label=f"Test {index}", score=round(result.percentage), date=result.date)
        for index, result in enumerate(recent, start=1)
    ]


def _aggregate(
    item_id: str,
    name: str,
    questions: Iterable[Question],
    subject_name: str = "",
) -> CategoryPerformance:
    matched = list(questions)
    answered = sum(q.times_answered for q in matched)
    correct = sum(q.times_correct for q in matched)
    return CategoryPerformance(
        id=item_id,
        name=name,
        answered=answered,
        correct=correct,
        accuracy=accuracy(correct, answered),
        question_count=len(matched),
        subject_name=subject_name,
    )


def subject_performance(subjects: list[Subject], questions: list[Question]) -> list[CategoryPerformance]:
    """Subjects with at least one answer, best rounded accuracy first.

    Ties on the rounded percentage keep catalog order.
    """
    rows = [
        _aggregate(s.id, s.name, (q for q in questions if q.subject_id == s.id))
        for s in subjects
    ]
    answered = [row for row in rows if row.answered > 0]
    return sorted(answered, key=lambda row: -_rounded(row.accuracy))


def weak_chapters(
    chapters: list[Chapter],
    questions: list[Question],
    subjects: list[Subject] | None = None,
    limit: int = WEAK_CHAPTERS_LIMIT,
) -> list[CategoryPerformance]:
    """Answered chapters with the lowest rounded accuracy first, tagged with their subject."""
    subject_names = {s.id: s.name for s in subjects or []}
    rows = [
        _aggregate(
            c.id,
            c.name,
            (q for q in questions if q.chapter_id == c.id),
            subject_name=subject_names.get(c.subject_id, ""),
        )
        for c in chapters
    ]
    answered = [row for row in rows if row.answered > 0]
    return sorted(answered, key=lambda row: _rounded(row.accuracy))[:limit]


def weak_subjects(
    subjects: list[Subject],
    questions: list[Question],
    limit: int = WEAK_SUBJECTS_LIMIT,
) -> list[CategoryPerformance]:
    """Subjects holding questions, lowest accuracy first (dashboard "focus areas")."""
    rows = [
        _aggregate(s.id, s.name, (q for q in questions if q.subject_id == s.id))
        for s in subjects
    ]
    populated = [row for row in rows if row.question_count > 0]
    return sorted(populated, key=lambda row: row.accuracy)[:limit]
