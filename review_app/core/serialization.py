"""Conversion between domain models and the JSON snapshot layout.

The snapshot keeps the camelCase keys used by the browser version of the
app (``questionTypes``, ``correctAnswer``, ``timesAnswered`` ...) so data
exported from it loads without a conversion step.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from review_app.constants.storage_constants import CURRENT_SCHEMA_VERSION
from review_app.core.models import (
    AppData,
    Chapter,
    Question,
    QuestionType,
    Subject,
    TestAnswer,
    TestConfiguration,
    TestResult,
)


def snapshot_to_dict(data: AppData) -> dict[str, Any]:
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "subjects": [
            {"id": s.id, "name": s.name, "color": s.color} for s in data.subjects
        ],
        "chapters": [
            {"id": c.id, "name": c.name, "subjectId": c.subject_id} for c in data.chapters
        ],
        "questionTypes": [
            {"id": t.id, "name": t.name, "chapterId": t.chapter_id}
            for t in data.question_types
        ],
        "questions": [question_to_dict(q) for q in data.questions],
        "testResults": [result_to_dict(r) for r in data.test_results],
    }


def snapshot_from_dict(raw: dict[str, Any]) -> AppData:
    """Build an ``AppData`` from an already migrated snapshot dict."""
    return AppData(
        subjects=[
            Subject(id=str(s["id"]), name=s["name"], color=s.get("color", ""))
            for s in raw.get("subjects", [])
        ],
        chapters=[
            Chapter(id=str(c["id"]), name=c["name"], subject_id=str(c["subjectId"]))
            for c in raw.get("chapters", [])
        ],
        question_types=[
            QuestionType(id=str(t["id"]), name=t["name"], chapter_id=str(t["chapterId"]))
            for t in raw.get("questionTypes", [])
        ],
        questions=[question_from_dict(q) for q in raw.get("questions", [])],
        test_results=[result_from_dict(r) for r in raw.get("testResults", [])],
    )


def question_to_dict(question: Question) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": question.id,
        "text": question.text,
        "options": dict(question.options),
        "correctAnswer": question.correct_answer,
        "subjectId": question.subject_id,
        "chapterId": question.chapter_id,
        "typeId": question.type_id,
        "createdAt": _format_datetime(question.created_at),
        "timesAnswered": question.times_answered,
        "timesCorrect": question.times_correct,
        "references": list(question.references),
    }
    if question.explanation is not None:
        payload["explanation"] = question.explanation
    if question.explanation_image_url is not None:
        payload["explanationImageUrl"] = question.explanation_image_url
    return payload


def question_from_dict(raw: dict[str, Any]) -> Question:
    return Question(
        id=str(raw["id"]),
        text=raw["text"],
        options={label: text for label, text in raw["options"].items()},
        correct_answer=raw["correctAnswer"],
        subject_id=str(raw["subjectId"]),
        chapter_id=str(raw["chapterId"]),
        type_id=str(raw["typeId"]),
        created_at=_parse_datetime(raw.get("createdAt")),
        # The browser app stored an empty string when no explanation was given.
        explanation=raw.get("explanation") or None,
        explanation_image_url=raw.get("explanationImageUrl") or None,
        references=list(raw.get("references") or []),
        times_answered=int(raw.get("timesAnswered", 0)),
        times_correct=int(raw.get("timesCorrect", 0)),
    )


def config_to_dict(config: TestConfiguration) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "questionCount": config.question_count,
        "subjectIds": list(config.subject_ids),
        "chapterIds": list(config.chapter_ids),
        "typeIds": list(config.type_ids),
    }
    if config.time_limit_minutes is not None:
        payload["timeLimit"] = config.time_limit_minutes
    return payload


def config_from_dict(raw: dict[str, Any]) -> TestConfiguration:
    return TestConfiguration(
        question_count=int(raw["questionCount"]),
        subject_ids=tuple(raw.get("subjectIds") or ()),
        chapter_ids=tuple(raw.get("chapterIds") or ()),
        type_ids=tuple(raw.get("typeIds") or ()),
        time_limit_minutes=raw.get("timeLimit"),
    )


def result_to_dict(result: TestResult) -> dict[str, Any]:
    return {
        "id": result.id,
        "date": _format_datetime(result.date),
        "config": config_to_dict(result.config),
        "answers": [
            {
                "questionId": a.question_id,
                "selectedAnswer": a.selected_answer,
                "isCorrect": a.is_correct,
                "timeTaken": a.time_taken,
            }
            for a in result.answers
        ],
        "score": result.score,
        "totalQuestions": result.total_questions,
        "timeTaken": result.time_taken,
    }


def result_from_dict(raw: dict[str, Any]) -> TestResult:
    return TestResult(
        id=str(raw.get("id", "")),
        date=_parse_datetime(raw.get("date")),
        config=config_from_dict(raw["config"]),
        answers=tuple(
            TestAnswer(
                question_id=str(a["questionId"]),
                selected_answer=a.get("selectedAnswer"),
                is_correct=bool(a.get("isCorrect", False)),
                time_taken=int(a.get("timeTaken", 0)),
            )
            for a in raw.get("answers", [])
        ),
        score=int(raw["score"]),
        total_questions=int(raw["totalQuestions"]),
        time_taken=int(raw.get("timeTaken", 0)),
    )


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_datetime(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    # JavaScript's toISOString() ends with "Z", which fromisoformat rejects before 3.11.
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
