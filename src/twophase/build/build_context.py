"""Build Context - per-invocation build configuration.

This module defines:
- Mode: which of the two phases run
- Parameter: a name/value definition forwarded to the compile tool
- Toolchain: where the compile and link tools live and what they produce
- BuildParams: the immutable configuration one pipeline run works from

Design:
    BuildParams is constructed once (by the CLI, the build-file layer or a
    test) and handed to the orchestrator. Nothing in the pipeline mutates it,
    so two runs with equal BuildParams make the same decisions given the same
    files on disk.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .errors import ConfigurationError
from .source_resolver import DescriptorList, normalize_path


class Mode(Enum):
    """Which phases of the pipeline run."""

    COMPILE_ONLY = "compile"
    LINK_ONLY = "link"
    BOTH = "both"

    def __str__(self) -> str:
        return self.value

    @property
    def compiles(self) -> bool:
        return self is not Mode.LINK_ONLY

    @property
    def links(self) -> bool:
        return self is not Mode.COMPILE_ONLY

    @classmethod
    def parse(cls, value: str) -> "Mode":
        """Parse a mode name, accepting the candle/light aliases.

        Raises:
            ConfigurationError: If the value names no mode
        """
        normalized = value.strip().lower()
        normalized = _MODE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown mode '{value}' (expected one of: {choices})") from None


_MODE_ALIASES = {
    "candle": "compile",
    "light": "link",
}


@dataclass(frozen=True)
class Parameter:
    """A preprocessor definition passed to the compile tool."""

    name: str
    value: str

    def as_flag(self) -> str:
        return f"-d{self.name}={self.value}"


@dataclass(frozen=True)
class Toolchain:
    """Compile and link tool configuration.

    Attributes:
        compile_executable: Name of the compile tool
        link_executable: Name of the link tool
        object_extension: Extension of the compile tool's per-source output
        home: Installation directory; when None the tools are found on PATH
        vm: Runtime the tools are launched through (e.g. "mono"), if any
    """

    compile_executable: str = "candle.exe"
    link_executable: str = "light.exe"
    object_extension: str = ".wixobj"
    home: Optional[Path] = None
    vm: Optional[str] = None

    def executable_path(self, name: str) -> str:
        """Absolute path of a tool inside home, or the bare name without home."""
        if self.home is None:
            return name
        return str((self.home / name).absolute())

    @property
    def compiler(self) -> str:
        return self.executable_path(self.compile_executable)

    @property
    def linker(self) -> str:
        return self.executable_path(self.link_executable)


@dataclass(frozen=True)
class BuildParams:
    """Immutable configuration for one pipeline run.

    Attributes:
        project_dir: Directory relative paths are resolved against
        sources: Primary source descriptors (compiled, passed on the command line)
        more_sources: Auxiliary source descriptors (staleness only)
        intermediate_dir: Where intermediate targets go; None means the
            current working directory
        final_artifact: Link output; required whenever the mode links
        mode: Which phases run
        parameters: Definitions forwarded to the compile tool, in order
        toolchain: Tool locations and object extension
        fail_on_error: Whether a non-zero tool exit aborts the pipeline
        output_file: File receiving tool output instead of the log
        verbose: Whether to log per-file decisions
    """

    project_dir: Path
    sources: DescriptorList = field(default_factory=DescriptorList)
    more_sources: DescriptorList = field(default_factory=DescriptorList)
    intermediate_dir: Optional[Path] = None
    final_artifact: Optional[Path] = None
    mode: Mode = Mode.BOTH
    parameters: Tuple[Parameter, ...] = ()
    toolchain: Toolchain = field(default_factory=Toolchain)
    fail_on_error: bool = True
    output_file: Optional[Path] = None
    verbose: bool = False

    def resolve_path(self, path: Optional[Path]) -> Optional[Path]:
        """Anchor a configured path at project_dir (None stays None)."""
        if path is None:
            return None
        if path.is_absolute():
            return normalize_path(path)
        return normalize_path(self.project_dir / path)

    @property
    def intermediate_path(self) -> Optional[Path]:
        return self.resolve_path(self.intermediate_dir)

    @property
    def final_artifact_path(self) -> Optional[Path]:
        return self.resolve_path(self.final_artifact)

    @property
    def output_path(self) -> Optional[Path]:
        return self.resolve_path(self.output_file)

    def validate(self) -> None:
        """Check the preconditions a run needs before anything is resolved.

        Raises:
            ConfigurationError: If no source is configured, an explicit source
                is missing, the final artifact is missing while linking, or
                the final artifact is also configured as a primary source
        """
        if not self.sources:
            raise ConfigurationError("You must specify at least one source file.")

        explicit = [self.resolve_path(p) for p in self.sources.explicit_files()]
        for path in explicit:
            if not path.exists():
                raise ConfigurationError(f"Source file {path} doesn't exist.")

        if self.mode.links:
            if self.final_artifact is None:
                raise ConfigurationError(
                    f"You must specify the final artifact if you want to link (mode={self.mode})."
                )
            if self.final_artifact_path in explicit:
                raise ConfigurationError(
                    f"Final artifact {self.final_artifact_path} is also a primary source."
                )
