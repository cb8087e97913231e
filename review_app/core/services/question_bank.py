"""Service for managing the bank of missed questions."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import logging
from typing import Callable
from uuid import uuid4

from review_app.constants.test_constants import OPTION_LABELS
from review_app.core.models import Question, QuestionDraft

logger = logging.getLogger(__name__)


class QuestionValidationError(ValueError):
    """Raised when a question draft is incomplete or malformed."""


class QuestionBank:
    """Stores questions and their running answer counters."""

    def __init__(self, questions: list[Question] | None = None) -> None:
        self._questions: list[Question] = list(questions or [])

    def list_questions(self) -> list[Question]:
        """Return a copy of all stored questions in insertion order."""
        return list(self._questions)

    def get_question_count(self) -> int:
        return len(self._questions)

    def get_question(self, question_id: str) -> Question:
        index = self._index_of(question_id)
        if index < 0:
            raise KeyError(f"Unknown question id {question_id!r}")
        return self._questions[index]

    def has_question(self, question_id: str) -> bool:
        return self._index_of(question_id) >= 0

    def add_question(self, draft: QuestionDraft) -> Question:
        cleaned = self._prepare_draft(draft)
        question = Question(
            id=uuid4().hex,
            text=cleaned.text,
            options=cleaned.options,
            correct_answer=cleaned.correct_answer,
            subject_id=cleaned.subject_id,
            chapter_id=cleaned.chapter_id,
            type_id=cleaned.type_id,
            created_at=datetime.now(timezone.utc),
            explanation=cleaned.explanation,
            explanation_image_url=cleaned.explanation_image_url,
            references=cleaned.references,
        )
        self._questions.append(question)
        return question

    def update_question(self, question_id: str, draft: QuestionDraft) -> Question:
        """Replace the editable fields; id, creation time and counters are preserved."""
        existing = self.get_question(question_id)
        cleaned = self._prepare_draft(draft)
        updated = replace(
            existing,
            text=cleaned.text,
            options=cleaned.options,
            correct_answer=cleaned.correct_answer,
            subject_id=cleaned.subject_id,
            chapter_id=cleaned.chapter_id,
            type_id=cleaned.type_id,
            explanation=cleaned.explanation,
            explanation_image_url=cleaned.explanation_image_url,
            references=cleaned.references,
        )
        self._questions[self._index_of(question_id)] = updated
        return updated

    def delete_question(self, question_id: str) -> None:
        index = self._index_of(question_id)
        if index < 0:
            raise KeyError(f"Unknown question id {question_id!r}")
        self._questions.pop(index)

    def remove_where(self, predicate: Callable[[Question], bool]) -> int:
        """Drop every question matching ``predicate`` and return how many went."""
        before = len(self._questions)
        self._questions = [q for q in self._questions if not predicate(q)]
        return before - len(self._questions)

    def record_answer(self, question_id: str, was_correct: bool) -> None:
        """Bump the answer counters. Unknown ids are ignored."""
        index = self._index_of(question_id)
        if index < 0:
            logger.warning("Ignoring answer for unknown question %s", question_id)
            return
        question = self._questions[index]
        question.times_answered += 1
        if was_correct:
            question.times_correct += 1

    def filter_questions(
        self,
        search: str = "",
        subject_id: str | None = None,
        chapter_id: str | None = None,
        type_id: str | None = None,
    ) -> list[Question]:
        needle = search.strip().lower()
        return [
            q
            for q in self._questions
            if needle in q.text.lower()
            and (subject_id is None or q.subject_id == subject_id)
            and (chapter_id is None or q.chapter_id == chapter_id)
            and (type_id is None or q.type_id == type_id)
        ]

    def _index_of(self, question_id: str) -> int:
        return next((i for i, q in enumerate(self._questions) if q.id == question_id), -1)

    def _prepare_draft(self, draft: QuestionDraft) -> QuestionDraft:
        """Validate and normalize a draft before storage."""
        cleaned_text = draft.text.strip()
        if not cleaned_text:
            raise QuestionValidationError("Question text must not be empty.")

        options = self._validate_options(draft.options)

        correct = (draft.correct_answer or "").strip().upper()
        if correct not in OPTION_LABELS:
            raise QuestionValidationError("Correct answer must be one of A, B, C, or D.")

        for label, value in (
            ("Subject", draft.subject_id),
            ("Chapter", draft.chapter_id),
            ("Type", draft.type_id),
        ):
            if not value:
                raise QuestionValidationError(f"{label} is required.")

        explanation = (draft.explanation or "").strip() or None
        image_url = (draft.explanation_image_url or "").strip() or None

        return QuestionDraft(
            text=cleaned_text,
            options=options,
            correct_answer=correct,
            subject_id=draft.subject_id,
            chapter_id=draft.chapter_id,
            type_id=draft.type_id,
            explanation=explanation,
            explanation_image_url=image_url,
            references=self._normalize_references(draft.references),
        )

    @staticmethod
    def _validate_options(options: dict[str, str]) -> dict[str, str]:
        if set(options) != set(OPTION_LABELS):
            raise QuestionValidationError("Each question must have exactly four options (A-D).")
        cleaned = {label: (options[label] or "").strip() for label in OPTION_LABELS}
        if any(not text for text in cleaned.values()):
            raise QuestionValidationError("Option text cannot be empty.")
        return cleaned

    @staticmethod
    def _normalize_references(references: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in references:
            stripped = tag.strip()
            if stripped and stripped not in seen:
                seen.append(stripped)
        return seen
