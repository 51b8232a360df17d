"""Intermediate target naming.

Each primary source compiles to exactly one intermediate target:

    <intermediate_dir>/<source stem>.<object extension>

The mapping depends only on the source path, the intermediate directory and
the object extension, so the same source always maps to the same target
across runs and timestamps can be compared between invocations.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import ConfigurationError


def normalize_extension(extension: str) -> str:
    """Return the extension with exactly one leading dot."""
    return "." + extension.lstrip(".")


def derive_target(source: Path, intermediate_dir: Optional[Path], object_extension: str) -> Path:
    """Derive the intermediate target path for a source file.

    Everything after the last dot of the file name is replaced by the object
    extension. A leading dot does not start an extension, so ``.hidden``
    becomes ``.hidden.wixobj``.

    Args:
        source: Source file path
        intermediate_dir: Directory for intermediate targets, or None for
            the current working directory
        object_extension: Extension of the compile tool's output

    Returns:
        Absolute path of the intermediate target
    """
    name = source.name
    dot = name.rfind(".")
    if dot > 0:
        name = name[:dot]
    name += normalize_extension(object_extension)

    base = intermediate_dir if intermediate_dir is not None else Path.cwd()
    return (base / name).absolute()


def find_collisions(
    sources: Iterable[Path], intermediate_dir: Optional[Path], object_extension: str
) -> Dict[Path, List[Path]]:
    """Map every target derived from more than one source to those sources."""
    by_target: Dict[Path, List[Path]] = {}
    for source in sources:
        by_target.setdefault(derive_target(source, intermediate_dir, object_extension), []).append(source)
    return {target: srcs for target, srcs in by_target.items() if len(srcs) > 1}


def check_collisions(sources: Iterable[Path], intermediate_dir: Optional[Path], object_extension: str) -> None:
    """Raise ConfigurationError if two sources would overwrite each other's target.

    Raises:
        ConfigurationError: Naming every colliding target and its sources
    """
    collisions = find_collisions(sources, intermediate_dir, object_extension)
    if not collisions:
        return

    lines = []
    for target, srcs in sorted(collisions.items()):
        lines.append(f"{target} <- " + ", ".join(str(s) for s in srcs))
    raise ConfigurationError(
        "Sources map to the same intermediate target:\n  " + "\n  ".join(lines)
    )
