"""Static metadata describing ExamDesk."""

APP_NAME = "ExamDesk"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "ExamDesk runs timed, proctored online exams for a school. "
    "Teachers publish exams to the catalog and students take them from a resumable session."
)
