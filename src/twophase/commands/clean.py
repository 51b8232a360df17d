"""Clean command implementation.

Deletes what a build of the current configuration would produce: the
intermediate target of every primary source and the final artifact. Sources,
auxiliary sources and unrelated files in the intermediate directory are left
alone, so a clean followed by a build recompiles and relinks everything.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..build.build_context import BuildParams
from ..build.errors import ConfigurationError
from ..build.source_resolver import FilesystemScanner, SourceResolver
from ..build.target_names import derive_target
from ..output import log_detail, log_warning

logger = logging.getLogger(__name__)


@dataclass
class CleanResult:
    """Files removed (or found missing) by a clean."""

    removed: List[Path] = field(default_factory=list)
    missing: List[Path] = field(default_factory=list)


def clean_outputs(params: BuildParams, scanner: Optional[FilesystemScanner] = None) -> CleanResult:
    """Delete the intermediate targets and final artifact of a configuration.

    Args:
        params: Build configuration whose outputs are deleted
        scanner: Pattern expander for file sets (GlobScanner if None)

    Returns:
        CleanResult listing removed and already-absent files

    Raises:
        ConfigurationError: If no source is configured
        ResolutionError: If a file set cannot be scanned
    """
    if not params.sources:
        raise ConfigurationError("You must specify at least one source file.")

    resolver = SourceResolver(params.project_dir, scanner)
    sources = resolver.resolve(params.sources)

    candidates: List[Path] = []
    if params.mode.compiles:
        intermediate_dir = params.intermediate_path
        extension = params.toolchain.object_extension
        candidates.extend(derive_target(source, intermediate_dir, extension) for source in sources)
    if params.final_artifact_path is not None:
        candidates.append(params.final_artifact_path)

    result = CleanResult()
    for path in candidates:
        if path in sources:
            # A final artifact listed among the sources is an input
            continue
        try:
            path.unlink()
        except FileNotFoundError:
            result.missing.append(path)
            continue
        except OSError as e:
            log_warning(f"Could not remove {path}: {e}")
            continue
        result.removed.append(path)
        log_detail(f"Removed {path.name}", verbose_only=True)

    logger.info(f"Removed {len(result.removed)} files ({len(result.missing)} already absent)")
    return result
