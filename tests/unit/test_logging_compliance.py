"""Unit tests for logging compliance across the codebase.

Library code under ``packsmith.packs`` reports through the logging module;
only the CLI and the output module write to the terminal.
"""

import re
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).parent.parent.parent / "src" / "packsmith"
TERMINAL_MODULES = {"cli.py", "output.py"}


def _library_files() -> list[Path]:
    files = [p for p in SRC_DIR.rglob("*.py") if "__pycache__" not in p.parts and p.name not in TERMINAL_MODULES]
    assert files, f"No Python files found in {SRC_DIR}"
    return files


class TestLoggingCompliance:
    def test_no_print_statements_in_library_code(self) -> None:
        violations = []
        for file_path in _library_files():
            for line_num, line in enumerate(file_path.read_text(encoding="utf-8").split("\n"), start=1):
                if line.strip().startswith("#"):
                    continue
                if re.search(r"(?<![\w.])print\s*\(", line):
                    violations.append(f"{file_path}:{line_num}: {line.strip()}")

        if violations:
            pytest.fail(f"Found {len(violations)} print() calls in library code:\n" + "\n".join(violations) + "\n\nUse logging instead.")

    def test_no_direct_stdout_writes(self) -> None:
        violations = []
        for file_path in _library_files():
            content = file_path.read_text(encoding="utf-8")
            if "sys.stdout.write" in content or "sys.stderr.write" in content:
                violations.append(str(file_path))

        assert violations == []

    def test_modules_use_named_loggers(self) -> None:
        """Modules that log must get their logger via logging.getLogger(__name__)."""
        violations = []
        for file_path in _library_files():
            content = file_path.read_text(encoding="utf-8")
            if re.search(r"\blogger\.(debug|info|warning|error)\(", content) and "logger = logging.getLogger(__name__)" not in content:
                violations.append(str(file_path))

        assert violations == []
