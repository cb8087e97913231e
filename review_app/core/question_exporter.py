"""Export questions to the plain-text format read by the importer."""

from __future__ import annotations

from pathlib import Path

from review_app.constants.test_constants import OPTION_LABELS
from review_app.core.models import Chapter, Question, QuestionType, Subject
from review_app.core.question_importer import CONTINUATION_MARKER


def save_questions_to_file(
    file_path: Path,
    questions: list[Question],
    subjects: list[Subject],
    chapters: list[Chapter],
    question_types: list[QuestionType],
) -> None:
    """Write ``questions`` to disk, naming their categories explicitly."""
    if not questions:
        raise ValueError("Cannot export an empty question list.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    document = serialize_questions(questions, subjects, chapters, question_types)
    file_path.write_text(document, encoding="utf-8")


def serialize_questions(
    questions: list[Question],
    subjects: list[Subject],
    chapters: list[Chapter],
    question_types: list[QuestionType],
) -> str:
    subject_names = {s.id: s.name for s in subjects}
    chapter_names = {c.id: c.name for c in chapters}
    type_names = {t.id: t.name for t in question_types}
    blocks = [
        _serialize_question(
            question,
            subject_names.get(question.subject_id, question.subject_id),
            chapter_names.get(question.chapter_id, question.chapter_id),
            type_names.get(question.type_id, question.type_id),
        )
        for question in questions
    ]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question, subject: str, chapter: str, type_name: str) -> str:
    lines = [f"SUBJECT: {subject}", f"CHAPTER: {chapter}", f"TYPE: {type_name}"]
    lines.extend(_prefixed("Q", question.text))
    for label in OPTION_LABELS:
        lines.extend(_prefixed(label, question.options.get(label, "")))
    lines.append(f"CORRECT: {question.correct_answer}")
    if question.explanation:
        lines.extend(_prefixed("EXPLANATION", question.explanation))
    if question.explanation_image_url:
        lines.append(f"IMAGE: {question.explanation_image_url}")
    if question.references:
        lines.append(f"REFERENCES: {', '.join(question.references)}")
    return "\n".join(lines)


def _prefixed(key: str, text: str) -> list[str]:
    # Later lines are escaped so blank, indented or "X: ..." lines survive import.
    text_lines = text.splitlines() or [""]
    return [f"{key}: {text_lines[0]}", *(f"{CONTINUATION_MARKER}{line}" for line in text_lines[1:])]
