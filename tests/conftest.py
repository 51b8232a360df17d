"""Pytest configuration and fixtures for twophase tests."""

import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

import pytest

from twophase.build.errors import ToolInvocationError


@pytest.fixture(autouse=True)
def isolate_output_globals():
    """Reset output.py module state before/after each test."""
    from twophase import output

    original_start_time = output._start_time
    original_output_stream = output._output_stream
    original_verbose = output._verbose

    output._start_time = None
    output._output_stream = None
    output._verbose = True

    yield

    output._start_time = original_start_time
    output._output_stream = original_output_stream
    output._verbose = original_verbose


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


def set_mtime(path: Path, mtime: float) -> None:
    """Set both access and modification time of a file."""
    os.utime(path, (mtime, mtime))


class FakeToolchainRunner:
    """Stands in for ProcessInvoker and behaves like a compile/link toolchain.

    The compile tool writes ``<stem><object_extension>`` into its working
    directory for every source argument; the link tool writes the file named
    after ``/out``. Every file the fake produces gets a timestamp from an
    internal clock that advances on each write, so tests never depend on
    filesystem timestamp resolution.
    """

    def __init__(
        self,
        object_extension: str = ".wixobj",
        compile_executable: str = "candle.exe",
        start_time: Optional[float] = None,
    ):
        self.object_extension = object_extension
        self.compile_executable = compile_executable
        self.clock = start_time if start_time is not None else time.time()
        self.calls: list[dict] = []
        self.fail_executables: set[str] = set()
        # Non-zero exits returned without raising, as ProcessInvoker does with fail_on_error off
        self.exit_codes: dict[str, int] = {}

    def tick(self) -> float:
        self.clock += 10
        return self.clock

    def run(
        self,
        executable: str,
        argv: Sequence[str],
        working_dir: Optional[Path] = None,
        output_file: Optional[Path] = None,
    ) -> int:
        self.calls.append(
            {
                "executable": executable,
                "argv": list(argv),
                "working_dir": working_dir,
                "output_file": output_file,
            }
        )
        name = Path(executable).name
        if name in self.fail_executables:
            raise ToolInvocationError(f"{name} failed with exit code 1", executable=executable, exit_code=1)
        if name in self.exit_codes:
            return self.exit_codes[name]

        if name == self.compile_executable:
            out_dir = working_dir if working_dir is not None else Path.cwd()
            for arg in argv:
                if arg == "/nologo" or arg.startswith("-d"):
                    continue
                target = out_dir / (Path(arg).stem + self.object_extension)
                target.write_text(f"object of {arg}")
                set_mtime(target, self.tick())
        else:
            out = Path(argv[argv.index("/out") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text("linked")
            set_mtime(out, self.tick())
        return 0

    def calls_to(self, executable_name: str) -> list[dict]:
        return [c for c in self.calls if Path(c["executable"]).name == executable_name]

    @staticmethod
    def positional(call: dict) -> list[str]:
        """Arguments of a call without /nologo and -d definitions."""
        return [a for a in call["argv"] if a != "/nologo" and not a.startswith("-d")]


@pytest.fixture
def fake_runner():
    return FakeToolchainRunner(start_time=time.time())


@pytest.fixture
def make_sources(tmp_path):
    """Create source files with a timestamp well in the past."""

    def _make(*names: str, base: Optional[Path] = None, mtime: Optional[float] = None) -> list[Path]:
        base_dir = base if base is not None else tmp_path
        stamp = mtime if mtime is not None else time.time() - 1000
        paths = []
        for name in names:
            path = base_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"<!-- {name} -->")
            set_mtime(path, stamp)
            paths.append(path)
        return paths

    return _make


@pytest.fixture(name="set_mtime")
def set_mtime_fixture():
    return set_mtime


@pytest.fixture
def make_runner():
    """Factory for FakeToolchainRunner with a custom toolchain shape."""

    def _make(**kwargs) -> FakeToolchainRunner:
        return FakeToolchainRunner(**kwargs)

    return _make
