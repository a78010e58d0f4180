"""Service for managing the collection of exam definitions."""

from __future__ import annotations

from uuid import uuid4

from exam_app.constants.exam_constants import DEFAULT_DURATION_MINUTES
from exam_app.core.errors import ExamNotFoundError, ExamValidationError
from exam_app.core.models import ExamDefinition, ExamQuestion, ExamStatus, QuestionType

_TRUE_FALSE_ANSWERS = ("true", "false")


class ExamCatalog:
    """Stores exam definitions and validates them on the way in."""

    def __init__(self) -> None:
        self._exams: dict[str, ExamDefinition] = {}

    def get_exam(self, exam_id: str) -> ExamDefinition:
        exam = self._exams.get(exam_id)
        if exam is None:
            raise ExamNotFoundError(f"Exam {exam_id!r} not found")
        return exam

    def get_exams(self) -> list[ExamDefinition]:
        """Return every exam in insertion order."""
        return list(self._exams.values())

    def get_active_exams(self) -> list[ExamDefinition]:
        return [exam for exam in self._exams.values() if exam.status is ExamStatus.ACTIVE]

    def save_exam(
        self,
        title: str,
        questions: list[ExamQuestion],
        duration_minutes: int | None = None,
        exam_id: str | None = None,
        teacher_id: str | None = None,
    ) -> ExamDefinition:
        """Create a new exam or replace the title and questions of an existing one."""
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ExamValidationError("Exam title must not be empty.")
        if not questions:
            raise ExamValidationError("Exam must contain at least one question.")

        prepared = [self._prepare_question(question) for question in questions]
        self._ensure_unique_ids(prepared)

        existing = self._exams.get(exam_id) if exam_id else None
        if exam_id and existing is None:
            raise ExamNotFoundError(f"Exam {exam_id!r} not found")

        if existing is not None:
            duration = duration_minutes if duration_minutes is not None else existing.duration_minutes
            exam = ExamDefinition(
                id=existing.id,
                title=cleaned_title,
                duration_minutes=self._normalize_duration(duration),
                questions=prepared,
                status=existing.status,
                teacher_id=teacher_id or existing.teacher_id,
            )
        else:
            duration = duration_minutes if duration_minutes is not None else DEFAULT_DURATION_MINUTES
            exam = ExamDefinition(
                id=uuid4().hex,
                title=cleaned_title,
                duration_minutes=self._normalize_duration(duration),
                questions=prepared,
                teacher_id=teacher_id,
            )
        self._exams[exam.id] = exam
        return exam

    def add_exam(self, exam: ExamDefinition) -> ExamDefinition:
        """Insert a fully formed exam (e.g. from an import) after validating it."""
        prepared = [self._prepare_question(question) for question in exam.questions]
        if not prepared:
            raise ExamValidationError("Exam must contain at least one question.")
        self._ensure_unique_ids(prepared)
        stored = ExamDefinition(
            id=exam.id or uuid4().hex,
            title=exam.title.strip(),
            duration_minutes=self._normalize_duration(exam.duration_minutes),
            questions=prepared,
            status=exam.status,
            teacher_id=exam.teacher_id,
        )
        self._exams[stored.id] = stored
        return stored

    def set_status(self, exam_id: str, status: ExamStatus) -> ExamDefinition:
        exam = self.get_exam(exam_id)
        exam.status = status
        return exam

    def _prepare_question(self, question: ExamQuestion) -> ExamQuestion:
        """Validate and normalize a question before storage."""
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ExamValidationError("Question text must not be empty.")
        if question.points < 0:
            raise ExamValidationError("Question points must not be negative.")

        question_type = QuestionType(question.type)
        options = [option.strip() for option in question.options]
        correct = question.correct_answer.strip()

        if question_type is QuestionType.MULTIPLE_CHOICE:
            if len(options) < 2 or any(not option for option in options):
                raise ExamValidationError("Multiple-choice questions need at least two non-empty options.")
            if correct not in options:
                raise ExamValidationError("Correct answer must be one of the options.")
        else:
            if options:
                raise ExamValidationError(f"{question_type.value} questions take no options.")
            if question_type is QuestionType.TRUE_FALSE:
                if correct.lower() not in _TRUE_FALSE_ANSWERS:
                    raise ExamValidationError("True/false answers must be 'True' or 'False'.")
                correct = correct.capitalize()

        return ExamQuestion(
            id=question.id or uuid4().hex[:8],
            type=question_type,
            text=cleaned_text,
            correct_answer=correct,
            points=question.points,
            options=options,
        )

    @staticmethod
    def _ensure_unique_ids(questions: list[ExamQuestion]) -> None:
        ids = [question.id for question in questions]
        if len(ids) != len(set(ids)):
            raise ExamValidationError("Question ids must be unique within an exam.")

    @staticmethod
    def _normalize_duration(duration_minutes: int) -> int:
        if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool):
            raise ExamValidationError("Duration must be a whole number of minutes.")
        if duration_minutes <= 0:
            raise ExamValidationError("Duration must be a positive number of minutes.")
        return duration_minutes
