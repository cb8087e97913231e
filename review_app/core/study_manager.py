"""Business logic shared by the API server and the countdown ticker."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import random
from threading import Lock
import time
from typing import Callable

from review_app.core.models import (
    AppData,
    Chapter,
    Question,
    QuestionDraft,
    QuestionType,
    Subject,
    TestConfiguration,
    TestResult,
    TestReview,
)
from review_app.core.question_exporter import save_questions_to_file
from review_app.core.question_importer import ImportedQuestion, load_questions_from_file
from review_app.core.services import statistics
from review_app.core.services.category_catalog import CategoryCatalog, CategoryError
from review_app.core.services.question_bank import QuestionBank
from review_app.core.services.result_log import ResultLog
from review_app.core.services.test_session import (
    SessionPhase,
    SessionStateError,
    TestSession,
    filter_pool,
    validate_configuration,
)
from review_app.core.storage import SnapshotRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionSnapshot:
    """Point-in-time copy of an in-progress test, safe to hand outside the lock."""

    phase: SessionPhase
    config: TestConfiguration
    questions: list[Question]
    position: int
    answers: dict[str, str]
    question_times: dict[str, int]
    remaining_seconds: int | None

    @property
    def current_question(self) -> Question:
        return self.questions[self.position]

    @property
    def answered_count(self) -> int:
        return len(self.answers)


@dataclass(slots=True)
class StatisticsReport:
    overview: statistics.OverviewStats
    score_trend: list[statistics.TrendPoint]
    subject_performance: list[statistics.CategoryPerformance]
    weak_chapters: list[statistics.CategoryPerformance]
    weak_subjects: list[statistics.CategoryPerformance]
    recent_results: list[TestResult] = field(default_factory=list)


class StudyManager:
    """Facade over the question bank, categories, result log and active test."""

    def __init__(
        self,
        repository: SnapshotRepository,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = Lock()
        self._repository = repository
        self._rng = rng or random.Random()
        self._clock = clock

        snapshot = repository.load()
        self._bank = QuestionBank(snapshot.questions if snapshot else None)
        if snapshot is None:
            logger.info("No stored data found; seeding default categories")
            self._catalog = CategoryCatalog.with_defaults(self._bank)
        else:
            self._catalog = CategoryCatalog(
                self._bank,
                subjects=snapshot.subjects,
                chapters=snapshot.chapters,
                question_types=snapshot.question_types,
            )
        self._results = ResultLog(snapshot.test_results if snapshot else None)

        self._session: TestSession | None = None
        self._last_review: TestReview | None = None

    # --- Category Delegation ---

    def list_subjects(self) -> list[Subject]:
        with self._lock:
            return self._catalog.list_subjects()

    def add_subject(self, name: str, color: str = "") -> Subject:
        with self._lock:
            subject = self._catalog.add_subject(name, color)
            self._persist()
            return subject

    def update_subject(self, subject_id: str, name: str | None = None, color: str | None = None) -> Subject:
        with self._lock:
            subject = self._catalog.update_subject(subject_id, name=name, color=color)
            self._persist()
            return subject

    def delete_subject(self, subject_id: str) -> None:
        with self._lock:
            self._catalog.delete_subject(subject_id)
            self._persist()

    def list_chapters(self, subject_id: str | None = None) -> list[Chapter]:
        with self._lock:
            if subject_id is None:
                return self._catalog.list_chapters()
            return self._catalog.chapters_for_subject(subject_id)

    def add_chapter(self, name: str, subject_id: str) -> Chapter:
        with self._lock:
            chapter = self._catalog.add_chapter(name, subject_id)
            self._persist()
            return chapter

    def update_chapter(self, chapter_id: str, name: str) -> Chapter:
        with self._lock:
            chapter = self._catalog.update_chapter(chapter_id, name)
            self._persist()
            return chapter

    def delete_chapter(self, chapter_id: str) -> None:
        with self._lock:
            self._catalog.delete_chapter(chapter_id)
            self._persist()

    def list_question_types(self, chapter_id: str | None = None) -> list[QuestionType]:
        with self._lock:
            if chapter_id is None:
                return self._catalog.list_question_types()
            return self._catalog.types_for_chapter(chapter_id)

    def add_question_type(self, name: str, chapter_id: str) -> QuestionType:
        with self._lock:
            question_type = self._catalog.add_question_type(name, chapter_id)
            self._persist()
            return question_type

    def update_question_type(self, type_id: str, name: str) -> QuestionType:
        with self._lock:
            question_type = self._catalog.update_question_type(type_id, name)
            self._persist()
            return question_type

    def delete_question_type(self, type_id: str) -> None:
        with self._lock:
            self._catalog.delete_question_type(type_id)
            self._persist()

    # --- Question Bank Delegation ---

    def list_questions(self) -> list[Question]:
        with self._lock:
            return self._bank.list_questions()

    def filter_questions(
        self,
        search: str = "",
        subject_id: str | None = None,
        chapter_id: str | None = None,
        type_id: str | None = None,
    ) -> list[Question]:
        with self._lock:
            return self._bank.filter_questions(search, subject_id, chapter_id, type_id)

    def get_question(self, question_id: str) -> Question:
        with self._lock:
            return self._bank.get_question(question_id)

    def add_question(self, draft: QuestionDraft) -> Question:
        with self._lock:
            self._check_categories(draft)
            question = self._bank.add_question(draft)
            self._persist()
            return question

    def update_question(self, question_id: str, draft: QuestionDraft) -> Question:
        with self._lock:
            self._check_categories(draft)
            question = self._bank.update_question(question_id, draft)
            self._persist()
            return question

    def delete_question(self, question_id: str) -> None:
        with self._lock:
            self._bank.delete_question(question_id)
            self._persist()

    def import_questions(self, file_path: Path) -> list[Question]:
        """Add every question of a text file, creating missing categories by name."""
        imported = load_questions_from_file(file_path)
        with self._lock:
            added = [self._bank.add_question(self._resolve_imported(item)) for item in imported]
            self._persist()
        logger.info("Imported %d question(s) from %s", len(added), file_path)
        return added

    def export_questions(self, file_path: Path, questions: list[Question] | None = None) -> None:
        with self._lock:
            save_questions_to_file(
                file_path,
                questions if questions is not None else self._bank.list_questions(),
                self._catalog.list_subjects(),
                self._catalog.list_chapters(),
                self._catalog.list_question_types(),
            )

    # --- Test Session Delegation ---

    def count_available_questions(self, config: TestConfiguration) -> int:
        """Size of the candidate pool; callers disable "start" when it is zero."""
        with self._lock:
            return len(filter_pool(self._bank.list_questions(), config))

    def start_test(self, config: TestConfiguration) -> SessionSnapshot:
        with self._lock:
            validate_configuration(config)
            if self._session is not None:
                logger.info("Discarding unfinished test to start a new one")
            session = TestSession(self._bank, self._results, rng=self._rng, clock=self._clock)
            candidates = session.configure(self._bank.list_questions(), config)
            session.start(candidates, config)
            self._session = session
            return self._snapshot(session)

    def get_current_test(self) -> SessionSnapshot | None:
        with self._lock:
            if self._session is None:
                return None
            return self._snapshot(self._session)

    def select_answer(self, option: str) -> SessionSnapshot:
        with self._lock:
            session = self._require_session()
            session.select_answer(option)
            return self._snapshot(session)

    def go_to_question(self, index: int) -> SessionSnapshot:
        with self._lock:
            session = self._require_session()
            session.go_to(index)
            return self._snapshot(session)

    def next_question(self) -> SessionSnapshot:
        with self._lock:
            session = self._require_session()
            session.next_question()
            return self._snapshot(session)

    def previous_question(self) -> SessionSnapshot:
        with self._lock:
            session = self._require_session()
            session.previous_question()
            return self._snapshot(session)

    def submit_test(self) -> TestReview:
        with self._lock:
            review = self._require_session().submit()
            self._finish(review)
            return review

    def advance_clock(self, now: float | None = None) -> TestReview | None:
        """Drive the countdown; returns the review when the time limit ended the test."""
        with self._lock:
            if self._session is None:
                return None
            review = self._session.advance_clock(self._clock() if now is None else now)
            if review is not None:
                self._finish(review)
            return review

    def abandon_test(self) -> None:
        """Drop the active test without recording anything."""
        with self._lock:
            self._require_session()
            self._session = None
            logger.info("Test abandoned")

    def has_active_test(self) -> bool:
        with self._lock:
            return self._session is not None

    def get_last_review(self) -> TestReview | None:
        with self._lock:
            return self._last_review

    # --- Results & Statistics ---

    def list_results(self) -> list[TestResult]:
        with self._lock:
            return self._results.list_results()

    def get_result(self, result_id: str) -> TestResult:
        with self._lock:
            return self._results.get_result(result_id)

    def get_statistics(self) -> StatisticsReport:
        with self._lock:
            results = self._results.list_results()
            questions = self._bank.list_questions()
            subjects = self._catalog.list_subjects()
            return StatisticsReport(
                overview=statistics.summarize(results, questions),
                score_trend=statistics.score_trend(results),
                subject_performance=statistics.subject_performance(subjects, questions),
                weak_chapters=statistics.weak_chapters(self._catalog.list_chapters(), questions, subjects),
                weak_subjects=statistics.weak_subjects(subjects, questions),
                recent_results=self._results.recent_results(),
            )

    # --- Internals (callers hold the lock) ---

    def _require_session(self) -> TestSession:
        if self._session is None:
            raise SessionStateError("No test is in progress.")
        return self._session

    def _finish(self, review: TestReview) -> None:
        self._last_review = review
        self._session = None
        self._persist()

    @staticmethod
    def _snapshot(session: TestSession) -> SessionSnapshot:
        config = session.get_config()
        if config is None:
            raise SessionStateError("Test has not been started.")
        return SessionSnapshot(
            phase=session.get_phase(),
            config=config,
            questions=session.get_questions(),
            position=session.get_position(),
            answers=session.get_answers(),
            question_times=session.get_question_times(),
            remaining_seconds=session.get_remaining_seconds(),
        )

    def _check_categories(self, draft: QuestionDraft) -> None:
        try:
            chapter = self._catalog.get_chapter(draft.chapter_id)
            question_type = self._catalog.get_question_type(draft.type_id)
            self._catalog.get_subject(draft.subject_id)
        except KeyError as exc:
            raise CategoryError(str(exc.args[0])) from exc
        if chapter.subject_id != draft.subject_id:
            raise CategoryError("Chapter does not belong to the selected subject.")
        if question_type.chapter_id != draft.chapter_id:
            raise CategoryError("Question type does not belong to the selected chapter.")

    def _resolve_imported(self, item: ImportedQuestion) -> QuestionDraft:
        subject = self._catalog.find_subject_by_name(item.subject_name)
        if subject is None:
            subject = self._catalog.add_subject(item.subject_name)
        chapter = self._catalog.find_chapter_by_name(subject.id, item.chapter_name)
        if chapter is None:
            chapter = self._catalog.add_chapter(item.chapter_name, subject.id)
        question_type = self._catalog.find_type_by_name(chapter.id, item.type_name)
        if question_type is None:
            question_type = self._catalog.add_question_type(item.type_name, chapter.id)
        draft = item.draft
        draft.subject_id = subject.id
        draft.chapter_id = chapter.id
        draft.type_id = question_type.id
        return draft

    def _persist(self) -> None:
        snapshot = AppData(
            subjects=self._catalog.list_subjects(),
            chapters=self._catalog.list_chapters(),
            question_types=self._catalog.list_question_types(),
            questions=self._bank.list_questions(),
            test_results=self._results.list_results(),
        )
        try:
            self._repository.save(snapshot)
        except OSError:
            # Local writes are best effort; in-memory state stays authoritative.
            logger.exception("Failed to save data")
