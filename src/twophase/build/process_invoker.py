"""External tool execution.

ProcessInvoker runs the compile and link tools. It is the only place the
pipeline starts processes, so Ctrl+C handling, output capture and exit-code
policy are decided here once.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from ..subprocess_utils import safe_popen, terminate_process_tree
from .errors import ToolInvocationError

logger = logging.getLogger(__name__)


class ProcessInvoker:
    """Runs external tools and enforces the exit-code policy."""

    def __init__(self, vm: Optional[str] = None, fail_on_error: bool = True, verbose: bool = False):
        """Initialize process invoker.

        Args:
            vm: Runtime every tool is launched through (e.g. "mono"), if any
            fail_on_error: Raise on non-zero exit instead of logging a warning
            verbose: Log tool stdout at INFO instead of DEBUG
        """
        self.vm = vm
        self.fail_on_error = fail_on_error
        self.verbose = verbose

    def build_command(self, executable: str, argv: Sequence[str]) -> list[str]:
        cmd = [executable, *argv]
        if self.vm:
            cmd.insert(0, self.vm)
        return cmd

    def run(
        self,
        executable: str,
        argv: Sequence[str],
        working_dir: Optional[Path] = None,
        output_file: Optional[Path] = None,
    ) -> int:
        """Run a tool and wait for it to finish.

        Args:
            executable: Tool to run
            argv: Arguments, in order
            working_dir: Directory the tool runs in (current directory if None)
            output_file: File the tool's output is appended to instead of
                being logged

        Returns:
            The tool's exit code

        Raises:
            ToolInvocationError: If the tool cannot be started, its output
                cannot be written to output_file, or it exits non-zero while
                fail_on_error is set
        """
        cmd = self.build_command(executable, argv)
        logger.debug(f"Running: {subprocess.list2cmdline(cmd)}")

        try:
            proc = safe_popen(
                cmd,
                cwd=str(working_dir) if working_dir is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise ToolInvocationError(
                f"Failed to start {executable}: {e}", executable=executable, command=cmd
            ) from e

        try:
            stdout, stderr = proc.communicate()
        except KeyboardInterrupt:
            logger.warning(f"Interrupted, terminating {executable}")
            terminate_process_tree(proc.pid)
            raise

        self._record_output(executable, stdout, stderr, proc.returncode, output_file)

        if proc.returncode != 0:
            message = f"{executable} failed with exit code {proc.returncode}"
            if self.fail_on_error:
                raise ToolInvocationError(
                    message, executable=executable, exit_code=proc.returncode, command=cmd
                )
            logger.warning(f"{message} (continuing, fail_on_error is off)")

        return proc.returncode

    def _record_output(
        self,
        executable: str,
        stdout: str,
        stderr: str,
        returncode: int,
        output_file: Optional[Path],
    ) -> None:
        if output_file is not None:
            try:
                output_file.parent.mkdir(parents=True, exist_ok=True)
                with open(output_file, "a", encoding="utf-8") as f:
                    f.write(stdout)
                    f.write(stderr)
            except OSError as e:
                raise ToolInvocationError(
                    f"Failed to write output of {executable} to {output_file}: {e}",
                    executable=executable,
                    exit_code=returncode,
                ) from e
            return

        level = logging.INFO if self.verbose else logging.DEBUG
        for line in stdout.splitlines():
            logger.log(level, f"[{executable}] {line}")

        err_level = logging.WARNING if returncode != 0 else level
        for line in stderr.splitlines():
            logger.log(err_level, f"[{executable}] {line}")
