"""Import missed questions in bulk from a plain-text file.

File format (repeat blocks separated by blank lines or '---'):

    SUBJECT: Mathematics
    CHAPTER: Algebra
    TYPE: Conceptual
    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    EXPLANATION: Optional worked solution, may continue on following lines
    IMAGE: Optional URL of an explanation image
    REFERENCES: Optional, comma, separated, tags

A line starting with ":" always continues the current section, verbatim and
without the marker. The exporter writes every continuation line this way so
blank lines, indentation and lines such as "A: ..." inside an explanation
survive a round trip. Unmarked continuation lines are trimmed.

SUBJECT, CHAPTER and TYPE carry over to the following blocks until they are
set again, so a file of questions from one chapter only names it once.
Category names are resolved to ids by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from review_app.constants.test_constants import OPTION_LABELS
from review_app.core.models import QuestionDraft


class QuestionImportError(Exception):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestion:
    """A parsed question still referring to its categories by name."""

    subject_name: str
    chapter_name: str
    type_name: str
    draft: QuestionDraft


_CATEGORY_KEYS = ("SUBJECT", "CHAPTER", "TYPE")
CONTINUATION_MARKER = ":"


def load_questions_from_file(file_path: Path) -> list[ImportedQuestion]:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_questions(text)
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return questions


def parse_questions(text: str) -> list[ImportedQuestion]:
    categories: dict[str, str] = {}
    parsed: list[ImportedQuestion] = []
    for number, block in enumerate(_split_blocks(text), start=1):
        try:
            item = _parse_block(block, categories)
        except QuestionImportError as exc:
            raise QuestionImportError(f"Block {number}: {exc}") from exc
        if item is not None:
            parsed.append(item)
    return parsed


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block))
    return blocks


def _parse_block(block: str, categories: dict[str, str]) -> ImportedQuestion | None:
    """Parse one block. ``categories`` is updated in place so values carry over."""
    question_lines: list[str] = []
    options: dict[str, str] = {}
    explanation_lines: list[str] = []
    correct_letter: str | None = None
    image_url: str | None = None
    references: list[str] = []
    current_section: str | None = None

    for raw_line in block.splitlines():
        if raw_line.startswith(CONTINUATION_MARKER):
            line = raw_line[len(CONTINUATION_MARKER):]
            key, value = "", ""
        else:
            line = raw_line.strip()
            key, separator, value = line.partition(":")
            key = key.strip().upper() if separator else ""
            value = value.strip()

        if key in _CATEGORY_KEYS:
            if not value:
                raise QuestionImportError(f"{key} must not be empty.")
            categories[key] = value
            current_section = None
            continue

        if key == "Q":
            question_lines = [value]
            current_section = "Q"
            continue

        if key == "CORRECT":
            correct_letter = value.upper()
            current_section = None
            continue

        if key == "EXPLANATION":
            explanation_lines = [value]
            current_section = "EXPLANATION"
            continue

        if key == "IMAGE":
            image_url = value or None
            current_section = None
            continue

        if key == "REFERENCES":
            references = [tag.strip() for tag in value.split(",") if tag.strip()]
            current_section = None
            continue

        if key in OPTION_LABELS:
            options[key] = value
            current_section = key
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in OPTION_LABELS:
            options[current_section] = f"{options[current_section]}\n{line}"
        else:
            raise QuestionImportError(f"Encountered text outside of a known section: '{line}'.")

    if not question_lines and not options and correct_letter is None:
        # A header-only block, e.g. just switching SUBJECT/CHAPTER/TYPE.
        return None

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionImportError("Question text missing (Q: ...)")
    if set(options) != set(OPTION_LABELS):
        raise QuestionImportError("Each question must define exactly four options (A-D).")
    if any(not options[label].strip() for label in OPTION_LABELS):
        raise QuestionImportError("Option text cannot be empty.")
    if correct_letter not in OPTION_LABELS:
        raise QuestionImportError("CORRECT must be one of A, B, C, or D.")
    missing = [key for key in _CATEGORY_KEYS if key not in categories]
    if missing:
        raise QuestionImportError(f"Missing category line(s): {', '.join(missing)}.")

    explanation = "\n".join(explanation_lines).strip() or None
    return ImportedQuestion(
        subject_name=categories["SUBJECT"],
        chapter_name=categories["CHAPTER"],
        type_name=categories["TYPE"],
        draft=QuestionDraft(
            text=question_text,
            options={label: options[label].strip() for label in OPTION_LABELS},
            correct_answer=correct_letter,
            subject_id="",
            chapter_id="",
            type_id="",
            explanation=explanation,
            explanation_image_url=image_url,
            references=references,
        ),
    )
