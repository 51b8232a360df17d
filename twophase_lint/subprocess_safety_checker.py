"""Flake8 plugin to enforce that tools are only started through subprocess_utils.

Every external tool must be launched through twophase.subprocess_utils so it
gets the same console, stdin and Ctrl+C treatment.

Error Codes:
    SUB001: Direct subprocess.run() call detected - use safe_popen() instead
    SUB002: Direct subprocess.Popen() call detected - use safe_popen() instead
    SUB003: Direct subprocess.call() call detected - use safe_popen() instead
    SUB004: Direct subprocess.check_call() call detected - use safe_popen() instead
    SUB005: Direct subprocess.check_output() call detected - use safe_popen() instead
    SUB006: os.system() call detected - use safe_popen() instead

Usage:
    flake8 --select=SUB src/
"""

import ast
from typing import Any, Generator, Tuple, Type


class SubprocessSafetyChecker:
    """Flake8 plugin to check for unsafe process creation."""

    name = "subprocess-safety-checker"
    version = "1.0.0"

    ERRORS = {
        "SUB001": "SUB001 Direct subprocess.run() call - use safe_popen() from twophase.subprocess_utils",
        "SUB002": "SUB002 Direct subprocess.Popen() call - use safe_popen() from twophase.subprocess_utils",
        "SUB003": "SUB003 Direct subprocess.call() call - use safe_popen() from twophase.subprocess_utils",
        "SUB004": "SUB004 Direct subprocess.check_call() call - use safe_popen() from twophase.subprocess_utils",
        "SUB005": "SUB005 Direct subprocess.check_output() call - use safe_popen() from twophase.subprocess_utils",
        "SUB006": "SUB006 os.system() call - use safe_popen() from twophase.subprocess_utils",
    }

    # (module, attribute) -> error code
    UNSAFE_CALLS = {
        ("subprocess", "run"): "SUB001",
        ("subprocess", "Popen"): "SUB002",
        ("subprocess", "call"): "SUB003",
        ("subprocess", "check_call"): "SUB004",
        ("subprocess", "check_output"): "SUB005",
        ("os", "system"): "SUB006",
    }

    EXCLUDED_PATTERNS = [
        "subprocess_utils.py",
    ]

    def __init__(self, tree: ast.AST, filename: str = "(none)") -> None:
        self._tree = tree
        self._filename = filename

    def run(self) -> Generator[Tuple[int, int, str, Type[Any]], None, None]:
        """Run the checker and yield violations.

        Yields:
            Tuple of (line, column, message, checker_class)
        """
        for pattern in self.EXCLUDED_PATTERNS:
            if pattern in self._filename:
                return

        visitor = SubprocessCallVisitor()
        visitor.visit(self._tree)

        for line, col, msg in visitor.errors:
            yield (line, col, msg, type(self))


class SubprocessCallVisitor(ast.NodeVisitor):
    """AST visitor to find unsafe process creation calls."""

    def __init__(self) -> None:
        self.errors: list[Tuple[int, int, str]] = []

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Attribute) and isinstance(node.func.value, ast.Name):
            key = (node.func.value.id, node.func.attr)
            error_code = SubprocessSafetyChecker.UNSAFE_CALLS.get(key)
            if error_code is not None:
                self.errors.append((node.lineno, node.col_offset, SubprocessSafetyChecker.ERRORS[error_code]))

        self.generic_visit(node)
