"""Pure scoring helpers used by the session controller and the store."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from exam_app.core.models import ExamQuestion


def normalize_answer(value: str) -> str:
    return value.strip().lower()


def is_correct(question: ExamQuestion, answer: str | None) -> bool:
    """Exact match after trimming and lowercasing both sides."""
    if answer is None:
        return False
    normalized = normalize_answer(answer)
    # A blank answer never scores, even against a blank reference.
    return bool(normalized) and normalized == normalize_answer(question.correct_answer)


def grade_answers(questions: Sequence[ExamQuestion], answers: Mapping[str, str]) -> float:
    """Sum the points of every correctly answered question. No partial credit."""
    total = 0
    for question in questions:
        if is_correct(question, answers.get(question.id)):
            total += question.points
    return total


def max_score(questions: Sequence[ExamQuestion]) -> float:
    return sum(question.points for question in questions)


def count_answered(questions: Sequence[ExamQuestion], answers: Mapping[str, str]) -> int:
    """Questions of this exam holding a non-blank answer."""
    return sum(1 for question in questions if answers.get(question.id, "").strip())


def compute_progress(questions: Sequence[ExamQuestion], answers: Mapping[str, str]) -> int:
    """Percentage of answered questions, rounded half up."""
    total = len(questions)
    if total == 0:
        return 0
    answered = count_answered(questions, answers)
    # Integer half-up rounding; round() would round 12.5 down to 12.
    return (200 * answered + total) // (2 * total)
