import pytest

from exam_app.core.errors import ExamNotFoundError, ExamValidationError, SessionStateError
from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import ExamQuestion, ExamStatus, QuestionType
from exam_app.core.services.exam_catalog import ExamCatalog


def _mc(**overrides) -> ExamQuestion:
    fields = dict(
        id="q1",
        type=QuestionType.MULTIPLE_CHOICE,
        text="Pick one",
        options=["A", "B"],
        correct_answer="B",
        points=2,
    )
    fields.update(overrides)
    return ExamQuestion(**fields)


def test_save_exam_assigns_ids_and_defaults():
    catalog = ExamCatalog()
    exam = catalog.save_exam("  Quiz  ", [_mc(id="")], teacher_id="t-1")
    assert exam.id
    assert exam.title == "Quiz"
    assert exam.questions[0].id
    assert exam.status is ExamStatus.SCHEDULED
    assert exam.duration_minutes == 30
    assert catalog.get_exam(exam.id) is exam


def test_save_exam_replaces_questions_but_keeps_identity():
    catalog = ExamCatalog()
    exam = catalog.save_exam("Quiz", [_mc()], duration_minutes=45)
    catalog.set_status(exam.id, ExamStatus.ACTIVE)
    updated = catalog.save_exam("Quiz v2", [_mc(), _mc(id="q2")], exam_id=exam.id)
    assert updated.id == exam.id
    assert updated.duration_minutes == 45
    assert updated.status is ExamStatus.ACTIVE
    assert [q.id for q in updated.questions] == ["q1", "q2"]


@pytest.mark.parametrize(
    "question",
    [
        _mc(text="   "),
        _mc(points=-1),
        _mc(options=["only"]),
        _mc(correct_answer="C"),
        ExamQuestion(id="t", type=QuestionType.TRUE_FALSE, text="?", correct_answer="maybe"),
        ExamQuestion(id="s", type=QuestionType.SHORT_ANSWER, text="?", correct_answer="x", options=["x"]),
    ],
)
def test_invalid_questions_are_rejected(question):
    with pytest.raises(ExamValidationError):
        ExamCatalog().save_exam("Quiz", [question])


def test_duplicate_question_ids_are_rejected():
    with pytest.raises(ExamValidationError):
        ExamCatalog().save_exam("Quiz", [_mc(), _mc()])


def test_true_false_answers_are_normalized():
    question = ExamQuestion(id="t", type=QuestionType.TRUE_FALSE, text="?", correct_answer="true")
    exam = ExamCatalog().save_exam("Quiz", [question])
    assert exam.questions[0].correct_answer == "True"


def test_active_filter_and_missing_exam():
    catalog = ExamCatalog()
    first = catalog.save_exam("One", [_mc()])
    second = catalog.save_exam("Two", [_mc()])
    catalog.set_status(second.id, ExamStatus.ACTIVE)
    assert [exam.id for exam in catalog.get_active_exams()] == [second.id]
    assert len(catalog.get_exams()) == 2
    assert first.status is ExamStatus.SCHEDULED
    with pytest.raises(ExamNotFoundError):
        catalog.get_exam("missing")


def test_questions_are_frozen_while_sessions_run(two_question_exam):
    manager = ExamManager()
    manager.load_exams([two_question_exam])
    manager.start_session("exam-1", "alice")
    with pytest.raises(SessionStateError):
        manager.save_exam("Changed", [_mc()], exam_id="exam-1")

    manager.submit_session("exam-1", "alice", {}, 0)
    assert manager.save_exam("Changed", [_mc()], exam_id="exam-1").title == "Changed"


def test_closed_exam_cannot_be_started_but_can_be_resumed(two_question_exam):
    manager = ExamManager()
    manager.load_exams([two_question_exam])
    started, _ = manager.start_session("exam-1", "alice")
    manager.set_exam_status("exam-1", ExamStatus.ENDED)

    resumed_session, resumed = manager.start_session("exam-1", "alice")
    assert resumed
    assert resumed_session.start_time == started.start_time
    with pytest.raises(SessionStateError):
        manager.start_session("exam-1", "bob")
