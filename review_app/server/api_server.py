"""FastAPI server exposing the question bank, mock tests and statistics."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Thread
from typing import Iterator

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
import uvicorn

from review_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from review_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from review_app.constants.test_constants import DEFAULT_QUESTION_COUNT, MAX_QUESTION_COUNT
from review_app.core.markdown_renderer import renderer
from review_app.core.models import (
    Chapter,
    Question,
    QuestionDraft,
    QuestionType,
    Subject,
    TestConfiguration,
    TestResult,
    TestReview,
)
from review_app.core.services.statistics import CategoryPerformance, question_accuracy
from review_app.core.services.test_session import SessionStateError
from review_app.core.study_manager import SessionSnapshot, StudyManager


class SubjectPayload(BaseModel):
    name: str
    color: str = ""


class SubjectUpdatePayload(BaseModel):
    name: str | None = None
    color: str | None = None


class ChapterPayload(BaseModel):
    name: str
    subject_id: str


class TypePayload(BaseModel):
    name: str
    chapter_id: str


class RenamePayload(BaseModel):
    name: str


class QuestionPayload(BaseModel):
    """Fields of a question as entered by the user."""

    text: str
    options: dict[str, str]
    correct_answer: str
    subject_id: str
    chapter_id: str
    type_id: str
    explanation: str | None = None
    explanation_image_url: str | None = None
    references: list[str] = Field(default_factory=list)

    def to_draft(self) -> QuestionDraft:
        return QuestionDraft(
            text=self.text,
            options=dict(self.options),
            correct_answer=self.correct_answer,
            subject_id=self.subject_id,
            chapter_id=self.chapter_id,
            type_id=self.type_id,
            explanation=self.explanation,
            explanation_image_url=self.explanation_image_url,
            references=list(self.references),
        )


class TestConfigPayload(BaseModel):
    """Mock-test settings. Empty id lists select every category.

    The count is capped at the settings slider maximum; the engine itself
    only clamps to the pool size.
    """

    question_count: int = Field(default=DEFAULT_QUESTION_COUNT, ge=1, le=MAX_QUESTION_COUNT)
    subject_ids: list[str] = Field(default_factory=list)
    chapter_ids: list[str] = Field(default_factory=list)
    type_ids: list[str] = Field(default_factory=list)
    time_limit_minutes: int | None = None

    def to_config(self) -> TestConfiguration:
        return TestConfiguration(
            question_count=self.question_count,
            subject_ids=tuple(self.subject_ids),
            chapter_ids=tuple(self.chapter_ids),
            type_ids=tuple(self.type_ids),
            time_limit_minutes=self.time_limit_minutes,
        )


class AnswerPayload(BaseModel):
    option: str


class GoToPayload(BaseModel):
    index: int


@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate domain exceptions raised by the manager into HTTP errors."""
    try:
        yield
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found") from exc
    except IndexError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _subject_payload(subject: Subject) -> dict[str, object]:
    return {"id": subject.id, "name": subject.name, "color": subject.color}


def _chapter_payload(chapter: Chapter) -> dict[str, object]:
    return {"id": chapter.id, "name": chapter.name, "subject_id": chapter.subject_id}


def _type_payload(question_type: QuestionType) -> dict[str, object]:
    return {"id": question_type.id, "name": question_type.name, "chapter_id": question_type.chapter_id}


def _question_payload(question: Question, include_answer: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "text": question.text,
        "text_html": renderer.render_fragment(question.text),
        "options": dict(question.options),
        "subject_id": question.subject_id,
        "chapter_id": question.chapter_id,
        "type_id": question.type_id,
    }
    if include_answer:
        payload.update(
            {
                "correct_answer": question.correct_answer,
                "explanation": question.explanation,
                "explanation_html": renderer.render_fragment(question.explanation),
                "explanation_image_url": question.explanation_image_url,
                "references": list(question.references),
                "created_at": question.created_at.isoformat(),
                "times_answered": question.times_answered,
                "times_correct": question.times_correct,
                "accuracy": question_accuracy(question),
            }
        )
    return payload


def _config_payload(config: TestConfiguration) -> dict[str, object]:
    return {
        "question_count": config.question_count,
        "subject_ids": list(config.subject_ids),
        "chapter_ids": list(config.chapter_ids),
        "type_ids": list(config.type_ids),
        "time_limit_minutes": config.time_limit_minutes,
    }


def _result_payload(result: TestResult) -> dict[str, object]:
    return {
        "id": result.id,
        "date": result.date.isoformat(),
        "config": _config_payload(result.config),
        "answers": [
            {
                "question_id": answer.question_id,
                "selected_answer": answer.selected_answer,
                "is_correct": answer.is_correct,
                "time_taken": answer.time_taken,
            }
            for answer in result.answers
        ],
        "score": result.score,
        "total_questions": result.total_questions,
        "time_taken": result.time_taken,
        "percentage": round(result.percentage),
    }


def _review_payload(review: TestReview) -> dict[str, object]:
    return {
        "result": _result_payload(review.result),
        "questions": [_question_payload(q) for q in review.questions],
        "percentage": review.percentage,
        "grade": review.grade,
    }


def _session_payload(snapshot: SessionSnapshot) -> dict[str, object]:
    current = snapshot.current_question
    return {
        "phase": snapshot.phase.name.lower(),
        "config": _config_payload(snapshot.config),
        "position": snapshot.position,
        "question_count": len(snapshot.questions),
        "answered_count": snapshot.answered_count,
        "remaining_seconds": snapshot.remaining_seconds,
        "question": _question_payload(current, include_answer=False),
        "selected_answer": snapshot.answers.get(current.id),
        "navigation": [
            {"index": index, "question_id": q.id, "answered": q.id in snapshot.answers}
            for index, q in enumerate(snapshot.questions)
        ],
    }


def _performance_payload(row: CategoryPerformance) -> dict[str, object]:
    return {
        "id": row.id,
        "name": row.name,
        "answered": row.answered,
        "correct": row.correct,
        "accuracy": round(row.accuracy),
        "question_count": row.question_count,
        "subject_name": row.subject_name,
    }


def _get_study_manager_dependency(study_manager: StudyManager):
    def dependency() -> StudyManager:
        return study_manager

    return dependency


def create_api_app(study_manager: StudyManager) -> FastAPI:
    """Create a FastAPI application wired to the provided study manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_study_manager_dependency(study_manager)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "app": APP_NAME, "version": APP_VERSION}

    # --- Categories ---

    @app.get("/subjects")
    def list_subjects(manager: StudyManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [_subject_payload(s) for s in manager.list_subjects()]

    @app.post("/subjects", status_code=201)
    def add_subject(payload: SubjectPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _subject_payload(manager.add_subject(payload.name, payload.color))

    @app.patch("/subjects/{subject_id}")
    def update_subject(
        subject_id: str,
        payload: SubjectUpdatePayload,
        manager: StudyManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            return _subject_payload(manager.update_subject(subject_id, name=payload.name, color=payload.color))

    @app.delete("/subjects/{subject_id}", status_code=204)
    def delete_subject(subject_id: str, manager: StudyManager = Depends(manager_dep)) -> Response:
        with _http_errors():
            manager.delete_subject(subject_id)
        return Response(status_code=204)

    @app.get("/chapters")
    def list_chapters(
        subject_id: str | None = None,
        manager: StudyManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [_chapter_payload(c) for c in manager.list_chapters(subject_id)]

    @app.post("/chapters", status_code=201)
    def add_chapter(payload: ChapterPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _chapter_payload(manager.add_chapter(payload.name, payload.subject_id))

    @app.patch("/chapters/{chapter_id}")
    def update_chapter(
        chapter_id: str,
        payload: RenamePayload,
        manager: StudyManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            return _chapter_payload(manager.update_chapter(chapter_id, payload.name))

    @app.delete("/chapters/{chapter_id}", status_code=204)
    def delete_chapter(chapter_id: str, manager: StudyManager = Depends(manager_dep)) -> Response:
        with _http_errors():
            manager.delete_chapter(chapter_id)
        return Response(status_code=204)

    @app.get("/types")
    def list_types(
        chapter_id: str | None = None,
        manager: StudyManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [_type_payload(t) for t in manager.list_question_types(chapter_id)]

    @app.post("/types", status_code=201)
    def add_type(payload: TypePayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _type_payload(manager.add_question_type(payload.name, payload.chapter_id))

    @app.patch("/types/{type_id}")
    def update_type(
        type_id: str,
        payload: RenamePayload,
        manager: StudyManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            return _type_payload(manager.update_question_type(type_id, payload.name))

    @app.delete("/types/{type_id}", status_code=204)
    def delete_type(type_id: str, manager: StudyManager = Depends(manager_dep)) -> Response:
        with _http_errors():
            manager.delete_question_type(type_id)
        return Response(status_code=204)

    # --- Questions ---

    @app.get("/questions")
    def list_questions(
        search: str = "",
        subject_id: str | None = None,
        chapter_id: str | None = None,
        type_id: str | None = None,
        manager: StudyManager = Depends(manager_dep),
    ) -> dict[str, object]:
        matched = manager.filter_questions(search, subject_id, chapter_id, type_id)
        return {
            "total": len(manager.list_questions()),
            "questions": [_question_payload(q) for q in matched],
        }

    @app.post("/questions", status_code=201)
    def add_question(payload: QuestionPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _question_payload(manager.add_question(payload.to_draft()))

    @app.get("/questions/{question_id}")
    def get_question(question_id: str, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _question_payload(manager.get_question(question_id))

    @app.put("/questions/{question_id}")
    def update_question(
        question_id: str,
        payload: QuestionPayload,
        manager: StudyManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            return _question_payload(manager.update_question(question_id, payload.to_draft()))

    @app.delete("/questions/{question_id}", status_code=204)
    def delete_question(question_id: str, manager: StudyManager = Depends(manager_dep)) -> Response:
        with _http_errors():
            manager.delete_question(question_id)
        return Response(status_code=204)

    # --- Tests ---

    @app.post("/tests/pool")
    def candidate_pool(payload: TestConfigPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        available = manager.count_available_questions(payload.to_config())
        return {
            "available": available,
            "question_count": min(payload.question_count, available),
            "can_start": available > 0,
        }

    @app.post("/tests", status_code=201)
    def start_test(payload: TestConfigPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _session_payload(manager.start_test(payload.to_config()))

    @app.get("/tests/current")
    def get_current_test(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        manager.advance_clock()
        snapshot = manager.get_current_test()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No test is in progress.")
        return _session_payload(snapshot)

    @app.post("/tests/current/answer")
    def select_answer(payload: AnswerPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        manager.advance_clock()
        with _http_errors():
            return _session_payload(manager.select_answer(payload.option))

    @app.post("/tests/current/goto")
    def go_to_question(payload: GoToPayload, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        manager.advance_clock()
        with _http_errors():
            return _session_payload(manager.go_to_question(payload.index))

    @app.post("/tests/current/next")
    def next_question(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        manager.advance_clock()
        with _http_errors():
            return _session_payload(manager.next_question())

    @app.post("/tests/current/previous")
    def previous_question(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        manager.advance_clock()
        with _http_errors():
            return _session_payload(manager.previous_question())

    @app.post("/tests/current/submit")
    def submit_test(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _review_payload(manager.submit_test())

    @app.delete("/tests/current", status_code=204)
    def abandon_test(manager: StudyManager = Depends(manager_dep)) -> Response:
        with _http_errors():
            manager.abandon_test()
        return Response(status_code=204)

    @app.get("/tests/last")
    def last_review(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        review = manager.get_last_review()
        if review is None:
            raise HTTPException(status_code=404, detail="No test results found.")
        return _review_payload(review)

    # --- Results & statistics ---

    @app.get("/results")
    def list_results(manager: StudyManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [_result_payload(r) for r in manager.list_results()]

    @app.get("/results/{result_id}")
    def get_result(result_id: str, manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        with _http_errors():
            return _result_payload(manager.get_result(result_id))

    @app.get("/statistics")
    def get_statistics(manager: StudyManager = Depends(manager_dep)) -> dict[str, object]:
        report = manager.get_statistics()
        overview = report.overview
        return {
            "overview": {
                "total_tests": overview.total_tests,
                "total_questions": overview.total_questions,
                "average_score": overview.average_score,
                "best_score": overview.best_score,
                "total_time_seconds": overview.total_time_seconds,
                "total_time_formatted": overview.total_time_formatted,
                "questions_answered": overview.questions_answered,
            },
            "score_trend": [
                {"label": p.label, "score": p.score, "date": p.date.isoformat()} for p in report.score_trend
            ],
            "subject_performance": [_performance_payload(row) for row in report.subject_performance],
            "weak_chapters": [_performance_payload(row) for row in report.weak_chapters],
            "weak_subjects": [_performance_payload(row) for row in report.weak_subjects],
            "recent_results": [_result_payload(r) for r in report.recent_results],
        }

    return app


def start_api_server(
    study_manager: StudyManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(study_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ReviewApiServer", daemon=True)
    thread.start()
    return thread
