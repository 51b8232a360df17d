"""Link stage.

Links the intermediate targets into the final artifact when the artifact is
missing or older than any link input or auxiliary source. An up-to-date
artifact is an explicit skip, not an error.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .build_context import Toolchain
from .compile_stage import ToolRunner
from .source_resolver import ResolvedPathSet
from .staleness import is_out_of_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkResult:
    """Outcome of the link stage.

    Attributes:
        linked: Whether the link tool ran
        inputs: Files passed to the link tool (or that would have been)
    """

    linked: bool
    inputs: ResolvedPathSet


class LinkStage:
    """Links intermediate targets into the final artifact."""

    def __init__(self, toolchain: Toolchain, runner: ToolRunner, output_file: Optional[Path] = None):
        self.toolchain = toolchain
        self.runner = runner
        self.output_file = output_file

    def build_arguments(self, inputs: Sequence[Path], final_artifact: Path) -> list[str]:
        """Arguments after the executable: /nologo, inputs, then /out <artifact>."""
        args = ["/nologo"]
        args.extend(str(path.absolute()) for path in inputs)
        args.extend(["/out", str(final_artifact.absolute())])
        return args

    def run(
        self,
        inputs: ResolvedPathSet,
        auxiliary: ResolvedPathSet,
        final_artifact: Path,
    ) -> LinkResult:
        """Link if the final artifact is stale.

        Args:
            inputs: Intermediate targets, or raw primary sources when the
                compile stage was skipped
            auxiliary: Files that only take part in the staleness check
            final_artifact: Link output

        Returns:
            LinkResult telling whether the link tool ran

        Raises:
            ToolInvocationError: If the link tool fails
        """
        if not is_out_of_date(final_artifact, inputs.union(auxiliary)):
            logger.info(f"{final_artifact.name} is up to date, skipping link")
            return LinkResult(linked=False, inputs=inputs)

        logger.info(f"Linking {len(inputs)} inputs into {final_artifact.name}")
        self.runner.run(
            self.toolchain.linker,
            self.build_arguments(list(inputs), final_artifact),
            output_file=self.output_file,
        )
        return LinkResult(linked=True, inputs=inputs)
