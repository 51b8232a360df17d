"""Timestamp-based staleness checks.

A target is stale when it does not exist or when any of its dependencies has
a strictly newer modification time. This is the classic make rule: no content
hashing, no clock-skew correction, timestamps compared at whatever resolution
the filesystem reports.

A dependency that does not exist contributes no timestamp, so it can never
make a target stale on its own.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def get_mtime(path: Path) -> Optional[float]:
    """Return the modification time of a file, or None if it does not exist."""
    try:
        return path.stat().st_mtime
    except (FileNotFoundError, NotADirectoryError):
        # A parent that is a regular file means the path cannot exist
        return None


def is_out_of_date(target: Path, dependencies: Iterable[Path]) -> bool:
    """Check whether a target is older than any of its dependencies.

    Args:
        target: Generated file
        dependencies: Files the target is built from

    Returns:
        True if the target is missing or any dependency is newer
    """
    target_mtime = get_mtime(target)
    if target_mtime is None:
        logger.debug(f"Target missing: {target}")
        return True

    for dependency in dependencies:
        dependency_mtime = get_mtime(dependency)
        if dependency_mtime is None:
            logger.debug(f"Dependency missing, ignored: {dependency}")
            continue
        if target_mtime < dependency_mtime:
            logger.debug(f"Target {target} older than {dependency}")
            return True

    logger.debug(f"Target up to date: {target}")
    return False


def is_stale(target: Path, primary_dependency: Path, auxiliary_dependencies: Iterable[Path] = ()) -> bool:
    """Check whether a target must be rebuilt from its primary source.

    Args:
        target: Generated file
        primary_dependency: The source the target is compiled from
        auxiliary_dependencies: Extra files (includes, media) that also
            invalidate the target when newer

    Returns:
        True if the target is missing or older than any dependency
    """
    return is_out_of_date(target, [primary_dependency, *auxiliary_dependencies])
