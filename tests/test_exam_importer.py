from pathlib import Path

import pytest

from exam_app.core.errors import ExamImportError
from exam_app.core.exam_importer import load_exams_from_file, parse_exam_text
from exam_app.core.models import ExamStatus, QuestionType

_TWO_EXAMS = """
TITLE: Geography
DURATION: 15
STATUS: active
ID: geo

Q: What is the capital of France?
   Answer in one word.
TYPE: short-answer
CORRECT: Paris
POINTS: 2
---
Q: Which river flows through Cairo?
A: Thames
B: Nile
C: Danube
CORRECT: b

TITLE: History
Q: The Berlin wall fell in 1989.
TYPE: true-false
CORRECT: True
"""


def test_parses_multiple_exams():
    geography, history = parse_exam_text(_TWO_EXAMS)

    assert geography.id == "geo"
    assert geography.duration_minutes == 15
    assert geography.status is ExamStatus.ACTIVE
    capital, river = geography.questions
    assert capital.id == "q1"
    assert capital.text == "What is the capital of France?\nAnswer in one word."
    assert capital.points == 2
    assert river.type is QuestionType.MULTIPLE_CHOICE
    assert river.options == ["Thames", "Nile", "Danube"]
    assert river.correct_answer == "Nile"
    assert river.points == 1

    assert history.status is ExamStatus.SCHEDULED
    assert history.duration_minutes == 30
    assert history.questions[0].type is QuestionType.TRUE_FALSE


@pytest.mark.parametrize(
    "text",
    [
        "Q: orphan question\nCORRECT: x",
        "TITLE: X\nDURATION: soon\nQ: a\nCORRECT: b",
        "TITLE: X\nQ: pick\nA: one\nB: two\nCORRECT: D",
        "TITLE: X\nQ: pick\nA: one\nC: three\nCORRECT: A",
        "TITLE: X\nQ: short\nTYPE: short-answer",
        "TITLE: X\nQ: tf\nTYPE: true-false\nA: yes\nB: no\nCORRECT: A",
        "TITLE: X\nDURATION: 10",
    ],
)
def test_rejects_malformed_exams(text):
    with pytest.raises(ExamImportError):
        parse_exam_text(text)


def test_essay_without_reference_answer_is_allowed():
    (exam,) = parse_exam_text("TITLE: X\nQ: Discuss.\nTYPE: essay\nPOINTS: 0")
    assert exam.questions[0].correct_answer == ""
    assert exam.questions[0].points == 0


def test_bundled_exam_file_loads():
    imported = load_exams_from_file(Path(__file__).resolve().parent.parent / "exams.txt")
    (exam,) = imported.exams
    assert exam.id == "general-knowledge"
    assert [q.id for q in exam.questions] == ["q1", "q2", "q3", "q4"]


def test_empty_file_is_rejected(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("\n\n", encoding="utf-8")
    with pytest.raises(ExamImportError):
        load_exams_from_file(path)
