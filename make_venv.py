"""Helper script that creates a virtual environment and installs ExamDesk into it."""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys


def run_command(command: list[str]) -> None:
	subprocess.run(command, check=True)


def venv_python_path(venv_path: Path) -> Path:
	if os.name == "nt":
		return venv_path / "Scripts" / "python.exe"
	return venv_path / "bin" / "python"


def main() -> None:
	project_root = Path(__file__).resolve().parent
	venv_path = project_root / ".venv"
	python_exe = sys.executable

	print(f"Using Python interpreter: {python_exe}")
	run_command([python_exe, "-m", "venv", str(venv_path)])

	venv_python = venv_python_path(venv_path)
	run_command([str(venv_python), "-m", "pip", "install", "--upgrade", "pip"])
	run_command([str(venv_python), "-m", "pip", "install", "-e", f"{project_root}[test]"])

	print(f"Environment ready. Activate it from {venv_path} and run: python app_main.py")


if __name__ == "__main__":
	main()
