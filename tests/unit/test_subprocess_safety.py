"""Tests for the subprocess safety lint checker."""

import ast
from pathlib import Path

from twophase_lint.subprocess_safety_checker import SubprocessSafetyChecker

SRC_DIR = Path(__file__).parent.parent.parent / "src"


def check(source: str, filename: str = "module.py") -> list[str]:
    checker = SubprocessSafetyChecker(ast.parse(source), filename=filename)
    return [msg.split()[0] for _line, _col, msg, _type in checker.run()]


def test_flags_direct_calls():
    source = "import os, subprocess\nsubprocess.run(['x'])\nsubprocess.Popen(['x'])\nos.system('x')\n"
    assert check(source) == ["SUB001", "SUB002", "SUB006"]


def test_safe_popen_is_allowed():
    assert check("from twophase.subprocess_utils import safe_popen\nsafe_popen(['x'])\n") == []


def test_subprocess_utils_is_excluded():
    assert check("import subprocess\nsubprocess.Popen(['x'])\n", filename="src/twophase/subprocess_utils.py") == []


def test_source_tree_is_clean():
    """No module outside subprocess_utils starts processes directly."""
    violations = []
    for file_path in sorted(SRC_DIR.rglob("*.py")):
        tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
        for line, _col, msg, _type in SubprocessSafetyChecker(tree, filename=str(file_path)).run():
            violations.append(f"{file_path}:{line}: {msg}")

    assert violations == []
