"""Compile stage.

For every primary source the stage derives its intermediate target and
compiles the sources whose targets are stale. All stale sources go to the
compile tool in a single invocation; a failing batch fails every source in it.

The stage always returns the complete target set, fresh and rebuilt alike,
because the link stage needs every object regardless of what was rebuilt.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple

from ..output import log_file
from .build_context import Parameter, Toolchain
from .errors import ConfigurationError
from .source_resolver import ResolvedPathSet
from .staleness import is_stale
from .target_names import check_collisions, derive_target

logger = logging.getLogger(__name__)


class ToolRunner(Protocol):
    """The part of ProcessInvoker the stages depend on."""

    def run(
        self,
        executable: str,
        argv: Sequence[str],
        working_dir: Optional[Path] = None,
        output_file: Optional[Path] = None,
    ) -> int: ...


@dataclass(frozen=True)
class CompileResult:
    """Outcome of the compile stage.

    Attributes:
        targets: Every intermediate target, one per primary source
        compiled: Sources handed to the compile tool in this run
    """

    targets: ResolvedPathSet
    compiled: Tuple[Path, ...]


class CompileStage:
    """Compiles stale primary sources into intermediate targets."""

    def __init__(
        self,
        toolchain: Toolchain,
        runner: ToolRunner,
        intermediate_dir: Optional[Path] = None,
        parameters: Sequence[Parameter] = (),
        output_file: Optional[Path] = None,
    ):
        """Initialize compile stage.

        Args:
            toolchain: Compile tool location and object extension
            runner: Executes the compile tool
            intermediate_dir: Where targets are written (current directory if None)
            parameters: Definitions appended to the command line, in order
            output_file: Redirect for the tool's output
        """
        self.toolchain = toolchain
        self.runner = runner
        self.intermediate_dir = intermediate_dir
        self.parameters = tuple(parameters)
        self.output_file = output_file

    def target_for(self, source: Path) -> Path:
        return derive_target(source, self.intermediate_dir, self.toolchain.object_extension)

    def build_arguments(self, stale_sources: Sequence[Path]) -> list[str]:
        """Arguments after the executable: /nologo, sources, then definitions."""
        args = ["/nologo"]
        args.extend(str(source.absolute()) for source in stale_sources)
        args.extend(p.as_flag() for p in self.parameters)
        return args

    def run(self, sources: ResolvedPathSet, auxiliary: ResolvedPathSet = ResolvedPathSet()) -> CompileResult:
        """Compile every source whose target is stale.

        Args:
            sources: Primary sources
            auxiliary: Files that invalidate every target when newer

        Returns:
            CompileResult with the full target set and the compiled sources

        Raises:
            ConfigurationError: If two sources derive the same target, or the
                intermediate directory is a file or cannot be created
            ToolInvocationError: If the compile tool fails
        """
        check_collisions(sources, self.intermediate_dir, self.toolchain.object_extension)
        if self.intermediate_dir is not None and self.intermediate_dir.exists() and not self.intermediate_dir.is_dir():
            raise ConfigurationError(f"Intermediate directory {self.intermediate_dir} exists and is not a directory.")

        targets = []
        stale = []
        for source in sources:
            target = self.target_for(source)
            targets.append(target)
            if is_stale(target, source, auxiliary):
                stale.append(source)
                log_file("compile", source.name)
            else:
                log_file("compile", source.name, skipped=True)

        if stale:
            logger.info(f"Compiling {len(stale)} of {len(targets)} sources")
            if self.intermediate_dir is not None:
                try:
                    self.intermediate_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise ConfigurationError(
                        f"Cannot create intermediate directory {self.intermediate_dir}: {e}"
                    ) from e
            self.runner.run(
                self.toolchain.compiler,
                self.build_arguments(stale),
                working_dir=self.intermediate_dir,
                output_file=self.output_file,
            )
        else:
            logger.info(f"All {len(targets)} intermediate targets up to date")

        return CompileResult(targets=ResolvedPathSet.of(targets), compiled=tuple(stale))
