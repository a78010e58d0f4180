"""Utilities for importing exams from a human-friendly text file.

File format (one or more exams; each exam starts with a TITLE line):

    TITLE: Exam title
    DURATION: minutes            (optional, defaults to 30)
    STATUS: scheduled|active|ended (optional, defaults to scheduled)
    ID: exam-id                  (optional, generated when omitted)

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    TYPE: multiple-choice|true-false|short-answer|essay (optional, defaults
          to multiple-choice when options are present, short-answer otherwise)
    A: First option text         (multiple-choice only, A-F)
    B: Second option text
    CORRECT: B                   (option letter for multiple-choice,
                                  True/False, or the reference text)
    POINTS: 5                    (optional, defaults to 1)

Question blocks are separated by blank lines or '---'.

Example:

    TITLE: Geography
    DURATION: 15
    STATUS: active

    Q: What is the capital of France?
    TYPE: short-answer
    CORRECT: Paris
    POINTS: 2
    ---
    Q: Lyon is the capital of France.
    TYPE: true-false
    CORRECT: False
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from exam_app.constants.exam_constants import DEFAULT_DURATION_MINUTES
from exam_app.core.errors import ExamImportError
from exam_app.core.models import ExamDefinition, ExamQuestion, ExamStatus, QuestionType

_OPTION_ORDER = ["A", "B", "C", "D", "E", "F"]
_HEADER_KEYS = ("TITLE", "DURATION", "STATUS", "ID")


@dataclass(slots=True)
class ImportedExams:
    """Container for the source path and the exams parsed from it."""

    source_path: Path
    exams: list[ExamDefinition]


def load_exams_from_file(file_path: Path) -> ImportedExams:
    text = file_path.read_text(encoding="utf-8")
    exams = parse_exam_text(text)
    if not exams:
        raise ExamImportError("Exam file did not contain any exams.")
    return ImportedExams(source_path=file_path, exams=exams)


def parse_exam_text(text: str) -> list[ExamDefinition]:
    sections: list[list[str]] = []
    for raw_line in text.splitlines():
        if raw_line.strip().upper().startswith("TITLE:"):
            sections.append([])
        if not sections:
            if raw_line.strip():
                raise ExamImportError("Exam file must start with a TITLE line.")
            continue
        sections[-1].append(raw_line)
    return [_parse_exam_section(lines) for lines in sections]


def _parse_exam_section(lines: list[str]) -> ExamDefinition:
    header: dict[str, str] = {}
    body_start = len(lines)
    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            continue
        key, separator, value = line.partition(":")
        if separator and key.strip().upper() in _HEADER_KEYS:
            header[key.strip().upper()] = value.strip()
            continue
        body_start = index
        break

    title = header.get("TITLE", "")
    if not title:
        raise ExamImportError("TITLE must not be empty.")

    duration = DEFAULT_DURATION_MINUTES
    if "DURATION" in header:
        try:
            duration = int(header["DURATION"])
        except ValueError as exc:
            raise ExamImportError("DURATION must be an integer number of minutes.") from exc
        if duration <= 0:
            raise ExamImportError("DURATION must be a positive integer.")

    status = ExamStatus.SCHEDULED
    if "STATUS" in header:
        try:
            status = ExamStatus(header["STATUS"].lower())
        except ValueError as exc:
            raise ExamImportError(f"Unknown STATUS '{header['STATUS']}'.") from exc

    questions = [
        _parse_block(block, position)
        for position, block in enumerate(_split_blocks(lines[body_start:]), start=1)
    ]
    if not questions:
        raise ExamImportError(f"Exam '{title}' has no questions.")

    return ExamDefinition(
        id=header.get("ID", ""),
        title=title,
        duration_minutes=duration,
        questions=questions,
        status=status,
    )


def _split_blocks(lines: list[str]) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in lines:
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str, position: int) -> ExamQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct: str | None = None
    question_type: QuestionType | None = None
    points: float = 1
    question_id = f"q{position}"
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if upper.startswith("TYPE:"):
            raw_type = line.split(":", 1)[1].strip().lower()
            try:
                question_type = QuestionType(raw_type)
            except ValueError as exc:
                raise ExamImportError(f"Unknown question TYPE '{raw_type}'.") from exc
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            raw_value = line.split(":", 1)[1].strip()
            try:
                points = float(raw_value)
            except ValueError as exc:
                raise ExamImportError("POINTS must be a number.") from exc
            if points < 0:
                raise ExamImportError("POINTS must not be negative.")
            if points.is_integer():
                points = int(points)
            current_section = None
            continue

        if upper.startswith("ID:"):
            question_id = line.split(":", 1)[1].strip() or question_id
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise ExamImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise ExamImportError("Question text missing (Q: ...)")

    if question_type is None:
        question_type = QuestionType.MULTIPLE_CHOICE if options else QuestionType.SHORT_ANSWER

    option_list = _collect_options(options)
    if question_type is QuestionType.MULTIPLE_CHOICE:
        if len(option_list) < 2:
            raise ExamImportError("Multiple-choice questions need at least two options.")
        if correct is None:
            raise ExamImportError("Multiple-choice questions need a CORRECT option letter.")
        letter = correct.upper()
        if letter not in _OPTION_ORDER[: len(option_list)]:
            raise ExamImportError(f"CORRECT must be one of {', '.join(_OPTION_ORDER[: len(option_list)])}.")
        correct = option_list[_OPTION_ORDER.index(letter)]
    elif option_list:
        raise ExamImportError(f"{question_type.value} questions cannot define options.")

    if correct is None:
        if question_type is not QuestionType.ESSAY:
            raise ExamImportError("CORRECT is required for auto-graded questions.")
        correct = ""

    return ExamQuestion(
        id=question_id,
        type=question_type,
        text=question_text,
        correct_answer=correct,
        points=points,
        options=option_list,
    )


def _collect_options(options: dict[str, str]) -> list[str]:
    letters = [letter for letter in _OPTION_ORDER if letter in options]
    if letters != _OPTION_ORDER[: len(letters)]:
        raise ExamImportError("Options must be lettered consecutively starting at A.")
    option_list = [options[letter].strip() for letter in letters]
    if any(not option for option in option_list):
        raise ExamImportError("Option text cannot be empty.")
    return option_list
