"""Error types raised by the build pipeline.

Three kinds of failure can stop a build:

- ConfigurationError: the build is misconfigured; nothing was resolved or run.
- ResolutionError: a file set could not be scanned; no tool was run.
- ToolInvocationError: the compile or link tool is missing or exited non-zero.
"""

from typing import Optional, Sequence


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    pass


class ConfigurationError(PipelineError):
    """Raised when the build configuration is invalid or incomplete."""

    pass


class ResolutionError(PipelineError):
    """Raised when source descriptors cannot be resolved into files."""

    pass


class ToolInvocationError(PipelineError):
    """Raised when an external tool cannot be started or fails.

    Attributes:
        executable: Tool that was invoked
        exit_code: Exit code of the tool, or None if it never started
        command: Full command line that was executed
    """

    def __init__(
        self,
        message: str,
        executable: str,
        exit_code: Optional[int] = None,
        command: Sequence[str] = (),
    ):
        super().__init__(message)
        self.executable = executable
        self.exit_code = exit_code
        self.command = list(command)
