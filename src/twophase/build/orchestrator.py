"""
Pipeline orchestration.

Sequences one build run:

    IDLE -> RESOLVING -> COMPILING -> LINKING -> DONE
                 |            |           |
                 +------------+-----------+--> FAILED

LINK_ONLY goes straight from RESOLVING to LINKING and links the primary
sources as they are. COMPILE_ONLY ends after COMPILING. Any failure moves to
FAILED and skips the remaining stages; there is no resumption, a rerun starts
from the top and the timestamps left on disk decide what is redone.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..output import log_detail, log_error, log_phase
from .build_context import BuildParams
from .compile_stage import CompileStage, ToolRunner
from .errors import PipelineError
from .link_stage import LinkStage
from .process_invoker import ProcessInvoker
from .source_resolver import FilesystemScanner, ResolvedPathSet, SourceResolver

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """State of a pipeline run."""

    IDLE = "idle"
    RESOLVING = "resolving"
    COMPILING = "compiling"
    LINKING = "linking"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Result of a pipeline run.

    Attributes:
        success: Whether the run reached DONE
        state: Final state (DONE or FAILED)
        compiled: Sources handed to the compile tool
        linked: Whether the link tool ran
        targets: Intermediate targets known after the compile stage
        build_time: Wall time of the run in seconds
        message: Human-readable summary
        error: The failure, if any
        history: States visited, in order
    """

    success: bool
    state: PipelineState
    compiled: ResolvedPathSet = field(default_factory=ResolvedPathSet)
    linked: bool = False
    targets: ResolvedPathSet = field(default_factory=ResolvedPathSet)
    build_time: float = 0.0
    message: str = ""
    error: Optional[PipelineError] = None
    history: List[PipelineState] = field(default_factory=list)

    def raise_for_error(self) -> None:
        """Re-raise the failure of an unsuccessful run."""
        if self.error is not None:
            raise self.error


class PipelineOrchestrator:
    """Runs the resolve/compile/link sequence for one BuildParams."""

    def __init__(
        self,
        scanner: Optional[FilesystemScanner] = None,
        runner_factory: Optional[Callable[[BuildParams], ToolRunner]] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            scanner: Pattern expander for file sets (GlobScanner if None)
            runner_factory: Builds the tool runner for a run (a
                ProcessInvoker configured from the params if None)
        """
        self.scanner = scanner
        self.runner_factory = runner_factory if runner_factory is not None else _default_runner

    def build(self, params: BuildParams) -> PipelineResult:
        """Execute one pipeline run.

        Failures are reported in the result rather than raised; use
        PipelineResult.raise_for_error() to turn them back into exceptions.

        Args:
            params: Configuration of the run

        Returns:
            PipelineResult ending in DONE or FAILED
        """
        run = _PipelineRun(params, self.scanner, self.runner_factory(params))
        return run.execute()


def _default_runner(params: BuildParams) -> ToolRunner:
    return ProcessInvoker(
        vm=params.toolchain.vm,
        fail_on_error=params.fail_on_error,
        verbose=params.verbose,
    )


class _PipelineRun:
    """State for a single build() call; discarded afterwards."""

    def __init__(self, params: BuildParams, scanner: Optional[FilesystemScanner], runner: ToolRunner):
        self.params = params
        self.scanner = scanner
        self.runner = runner
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]
        self.total_phases = 1 + int(params.mode.compiles) + int(params.mode.links)
        self.phase = 0

    def _enter(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _next_phase(self, message: str) -> None:
        self.phase += 1
        log_phase(self.phase, self.total_phases, message)

    def execute(self) -> PipelineResult:
        params = self.params
        start_time = time.time()
        compiled = ResolvedPathSet()
        targets = ResolvedPathSet()
        linked = False

        try:
            params.validate()

            self._enter(PipelineState.RESOLVING)
            self._next_phase("Resolving sources...")
            resolver = SourceResolver(params.project_dir, self.scanner)
            sources = resolver.resolve(params.sources, required=True)
            auxiliary = resolver.resolve(params.more_sources)
            log_detail(f"{len(sources)} primary, {len(auxiliary)} auxiliary")

            if params.mode.compiles:
                self._enter(PipelineState.COMPILING)
                self._next_phase(f"Compiling {len(sources)} sources...")
                stage = CompileStage(
                    params.toolchain,
                    self.runner,
                    intermediate_dir=params.intermediate_path,
                    parameters=params.parameters,
                    output_file=params.output_path,
                )
                compile_result = stage.run(sources, auxiliary)
                compiled = ResolvedPathSet.of(compile_result.compiled)
                targets = compile_result.targets
                log_detail(f"{len(compiled)} compiled, {len(targets) - len(compiled)} up to date")
                link_inputs = targets
            else:
                link_inputs = sources

            if params.mode.links:
                final_artifact = params.final_artifact_path
                self._enter(PipelineState.LINKING)
                self._next_phase(f"Linking {final_artifact.name}...")
                link_stage = LinkStage(params.toolchain, self.runner, output_file=params.output_path)
                linked = link_stage.run(link_inputs, auxiliary, final_artifact).linked
                log_detail("linked" if linked else "up to date")

        except PipelineError as e:
            self._enter(PipelineState.FAILED)
            log_error(str(e))
            logger.debug(f"Pipeline failed in {self.history[-2].value}", exc_info=True)
            return PipelineResult(
                success=False,
                state=self.state,
                compiled=compiled,
                linked=linked,
                targets=targets,
                build_time=time.time() - start_time,
                message=str(e),
                error=e,
                history=list(self.history),
            )

        self._enter(PipelineState.DONE)
        return PipelineResult(
            success=True,
            state=self.state,
            compiled=compiled,
            linked=linked,
            targets=targets,
            build_time=time.time() - start_time,
            message=_summary(compiled, linked, params),
            history=list(self.history),
        )


def _summary(compiled: ResolvedPathSet, linked: bool, params: BuildParams) -> str:
    parts = []
    if params.mode.compiles:
        parts.append(f"compiled {len(compiled)} sources" if compiled else "nothing to compile")
    if params.mode.links:
        parts.append(f"linked {params.final_artifact_path.name}" if linked else "link up to date")
    return ", ".join(parts)
