"""Service for the subject -> chapter -> type category tree."""

from __future__ import annotations

from dataclasses import replace
import logging
from uuid import uuid4

from review_app.core.models import Chapter, QuestionType, Subject
from review_app.core.services.question_bank import QuestionBank

logger = logging.getLogger(__name__)


class CategoryError(ValueError):
    """Raised for invalid category names or dangling parent references."""


def default_subjects() -> list[Subject]:
    return [
        Subject(id="1", name="Mathematics", color="hsl(199, 89%, 48%)"),
        Subject(id="2", name="Physics", color="hsl(172, 66%, 50%)"),
        Subject(id="3", name="Chemistry", color="hsl(38, 92%, 50%)"),
    ]


def default_chapters() -> list[Chapter]:
    return [
        Chapter(id="1", name="Algebra", subject_id="1"),
        Chapter(id="2", name="Calculus", subject_id="1"),
        Chapter(id="3", name="Mechanics", subject_id="2"),
        Chapter(id="4", name="Thermodynamics", subject_id="2"),
        Chapter(id="5", name="Organic Chemistry", subject_id="3"),
    ]


def default_question_types() -> list[QuestionType]:
    return [
        QuestionType(id="1", name="Conceptual", chapter_id="1"),
        QuestionType(id="2", name="Numerical", chapter_id="1"),
        QuestionType(id="3", name="Application", chapter_id="2"),
    ]


class CategoryCatalog:
    """Manages categories and cascades deletions into the question bank."""

    def __init__(
        self,
        question_bank: QuestionBank,
        subjects: list[Subject] | None = None,
        chapters: list[Chapter] | None = None,
        question_types: list[QuestionType] | None = None,
    ) -> None:
        self._bank = question_bank
        self._subjects: list[Subject] = list(subjects or [])
        self._chapters: list[Chapter] = list(chapters or [])
        self._types: list[QuestionType] = list(question_types or [])

    @classmethod
    def with_defaults(cls, question_bank: QuestionBank) -> "CategoryCatalog":
        return cls(
            question_bank,
            subjects=default_subjects(),
            chapters=default_chapters(),
            question_types=default_question_types(),
        )

    # --- Subjects ---

    def list_subjects(self) -> list[Subject]:
        return list(self._subjects)

    def get_subject(self, subject_id: str) -> Subject:
        subject = next((s for s in self._subjects if s.id == subject_id), None)
        if subject is None:
            raise KeyError(f"Unknown subject id {subject_id!r}")
        return subject

    def find_subject_by_name(self, name: str) -> Subject | None:
        wanted = name.strip().casefold()
        return next((s for s in self._subjects if s.name.casefold() == wanted), None)

    def add_subject(self, name: str, color: str = "") -> Subject:
        subject = Subject(id=uuid4().hex, name=self._clean_name(name), color=color.strip())
        self._subjects.append(subject)
        return subject

    def update_subject(self, subject_id: str, name: str | None = None, color: str | None = None) -> Subject:
        subject = self.get_subject(subject_id)
        updated = replace(
            subject,
            name=self._clean_name(name) if name is not None else subject.name,
            color=color.strip() if color is not None else subject.color,
        )
        self._subjects = [updated if s.id == subject_id else s for s in self._subjects]
        return updated

    def delete_subject(self, subject_id: str) -> None:
        """Delete a subject with its chapters, their types and the subject's questions."""
        self.get_subject(subject_id)
        chapter_ids = {c.id for c in self._chapters if c.subject_id == subject_id}
        self._subjects = [s for s in self._subjects if s.id != subject_id]
        self._chapters = [c for c in self._chapters if c.subject_id != subject_id]
        self._types = [t for t in self._types if t.chapter_id not in chapter_ids]
        removed = self._bank.remove_where(lambda q: q.subject_id == subject_id)
        logger.info("Deleted subject %s (%d chapters, %d questions)", subject_id, len(chapter_ids), removed)

    # --- Chapters ---

    def list_chapters(self) -> list[Chapter]:
        return list(self._chapters)

    def chapters_for_subject(self, subject_id: str) -> list[Chapter]:
        return [c for c in self._chapters if c.subject_id == subject_id]

    def get_chapter(self, chapter_id: str) -> Chapter:
        chapter = next((c for c in self._chapters if c.id == chapter_id), None)
        if chapter is None:
            raise KeyError(f"Unknown chapter id {chapter_id!r}")
        return chapter

    def find_chapter_by_name(self, subject_id: str, name: str) -> Chapter | None:
        wanted = name.strip().casefold()
        return next(
            (c for c in self.chapters_for_subject(subject_id) if c.name.casefold() == wanted),
            None,
        )

    def add_chapter(self, name: str, subject_id: str) -> Chapter:
        if not any(s.id == subject_id for s in self._subjects):
            raise CategoryError(f"Subject {subject_id!r} does not exist.")
        chapter = Chapter(id=uuid4().hex, name=self._clean_name(name), subject_id=subject_id)
        self._chapters.append(chapter)
        return chapter

    def update_chapter(self, chapter_id: str, name: str) -> Chapter:
        updated = replace(self.get_chapter(chapter_id), name=self._clean_name(name))
        self._chapters = [updated if c.id == chapter_id else c for c in self._chapters]
        return updated

    def delete_chapter(self, chapter_id: str) -> None:
        """Delete a chapter along with its types and questions."""
        self.get_chapter(chapter_id)
        self._chapters = [c for c in self._chapters if c.id != chapter_id]
        self._types = [t for t in self._types if t.chapter_id != chapter_id]
        removed = self._bank.remove_where(lambda q: q.chapter_id == chapter_id)
        logger.info("Deleted chapter %s (%d questions)", chapter_id, removed)

    # --- Question types ---

    def list_question_types(self) -> list[QuestionType]:
        return list(self._types)

    def types_for_chapter(self, chapter_id: str) -> list[QuestionType]:
        return [t for t in self._types if t.chapter_id == chapter_id]

    def get_question_type(self, type_id: str) -> QuestionType:
        question_type = next((t for t in self._types if t.id == type_id), None)
        if question_type is None:
            raise KeyError(f"Unknown question type id {type_id!r}")
        return question_type

    def find_type_by_name(self, chapter_id: str, name: str) -> QuestionType | None:
        wanted = name.strip().casefold()
        return next(
            (t for t in self.types_for_chapter(chapter_id) if t.name.casefold() == wanted),
            None,
        )

    def add_question_type(self, name: str, chapter_id: str) -> QuestionType:
        if not any(c.id == chapter_id for c in self._chapters):
            raise CategoryError(f"Chapter {chapter_id!r} does not exist.")
        question_type = QuestionType(id=uuid4().hex, name=self._clean_name(name), chapter_id=chapter_id)
        self._types.append(question_type)
        return question_type

    def update_question_type(self, type_id: str, name: str) -> QuestionType:
        updated = replace(self.get_question_type(type_id), name=self._clean_name(name))
        self._types = [updated if t.id == type_id else t for t in self._types]
        return updated

    def delete_question_type(self, type_id: str) -> None:
        # Questions keep their (now dangling) type id.
        self.get_question_type(type_id)
        self._types = [t for t in self._types if t.id != type_id]

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = name.strip()
        if not cleaned:
            raise CategoryError("Name must not be empty.")
        return cleaned
