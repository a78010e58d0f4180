"""Application entry point for the ExamDesk exam server."""

from __future__ import annotations

import argparse
from pathlib import Path

from exam_app.constants.about import APP_NAME, APP_VERSION
from exam_app.constants.exam_constants import DEFAULT_EXAM_FILE
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.errors import ExamDeskError
from exam_app.core.exam_importer import load_exams_from_file
from exam_app.core.exam_manager import ExamManager
from exam_app.server.api_server import start_api_server
from exam_app.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} exam server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--exam-file",
        type=Path,
        default=Path(DEFAULT_EXAM_FILE),
        help="Exam definitions to load at startup (text import format).",
    )
    return parser.parse_args(argv)


def _auto_load_exams(manager: ExamManager, exam_file: Path) -> int:
    if not exam_file.exists():
        return 0
    imported = load_exams_from_file(exam_file)
    return len(manager.load_exams(imported.exams))


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load the exam catalog and serve the API."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    exam_manager = ExamManager()
    try:
        loaded = _auto_load_exams(exam_manager, args.exam_file)
    except (OSError, ExamDeskError, ValueError) as exc:
        logger.error("Could not load %s: %s", args.exam_file, exc)
    else:
        logger.info("Loaded %d exam(s) from %s", loaded, args.exam_file)

    server_thread = start_api_server(exam_manager=exam_manager, host=args.host, port=args.port)
    logger.info("Exam API listening on http://%s:%d/", args.host, args.port)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
