"""Source resolution.

Turns source descriptors into concrete files. A descriptor is either a single
explicit file or a directory plus include/exclude glob patterns; the patterns
are expanded by a FilesystemScanner so glob semantics live in one place.

Design:
    DescriptorList holds what the user configured (ordered, may repeat).
    ResolvedPathSet holds what was found on disk (absolute, deduplicated).
    Keeping them as separate types means nothing unresolved is ever compared
    by timestamp and nothing resolved is ever scanned twice.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol, Tuple, Union

from .errors import ConfigurationError, ResolutionError

logger = logging.getLogger(__name__)


def normalize_path(path: Path) -> Path:
    """Absolute path with "." and ".." segments collapsed (symlinks are kept)."""
    return Path(os.path.normpath(Path(path).absolute()))


class FilesystemScanner(Protocol):
    """Expands one include pattern below a base directory."""

    def scan(self, base_dir: Path, pattern: str) -> List[Path]: ...


class GlobScanner:
    """FilesystemScanner backed by pathlib globbing (``**`` recurses)."""

    def scan(self, base_dir: Path, pattern: str) -> List[Path]:
        return [p.absolute() for p in base_dir.glob(pattern) if p.is_file()]


@dataclass(frozen=True)
class FileDescriptor:
    """A single explicitly named source file."""

    path: Path


@dataclass(frozen=True)
class FileSetDescriptor:
    """A directory plus include and exclude patterns.

    Attributes:
        base_dir: Directory the patterns are relative to
        includes: Glob patterns selecting files
        excludes: Glob patterns removing files from the selection
    """

    base_dir: Path
    includes: Tuple[str, ...] = ("**/*",)
    excludes: Tuple[str, ...] = ()


SourceDescriptor = Union[FileDescriptor, FileSetDescriptor]


@dataclass(frozen=True)
class DescriptorList:
    """Ordered, unresolved source descriptors."""

    descriptors: Tuple[SourceDescriptor, ...] = ()

    @classmethod
    def of(cls, *descriptors: SourceDescriptor) -> "DescriptorList":
        return cls(tuple(descriptors))

    def __iter__(self) -> Iterator[SourceDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def __bool__(self) -> bool:
        return bool(self.descriptors)

    def explicit_files(self) -> List[Path]:
        return [d.path for d in self.descriptors if isinstance(d, FileDescriptor)]


@dataclass(frozen=True)
class ResolvedPathSet:
    """Deduplicated absolute paths; iterates in sorted order."""

    paths: frozenset = field(default_factory=frozenset)

    @classmethod
    def of(cls, paths: Iterable[Path]) -> "ResolvedPathSet":
        return cls(frozenset(normalize_path(p) for p in paths))

    def __iter__(self) -> Iterator[Path]:
        return iter(sorted(self.paths))

    def __len__(self) -> int:
        return len(self.paths)

    def __bool__(self) -> bool:
        return bool(self.paths)

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def union(self, other: "ResolvedPathSet") -> "ResolvedPathSet":
        return ResolvedPathSet(self.paths | other.paths)


class SourceResolver:
    """Resolves DescriptorLists into ResolvedPathSets."""

    def __init__(self, project_dir: Path, scanner: FilesystemScanner | None = None):
        """Initialize source resolver.

        Args:
            project_dir: Directory relative descriptor paths are anchored to
            scanner: Pattern expander (defaults to GlobScanner)
        """
        self.project_dir = project_dir.absolute()
        self.scanner = scanner if scanner is not None else GlobScanner()

    def _anchor(self, path: Path) -> Path:
        return path if path.is_absolute() else self.project_dir / path

    def resolve(self, descriptors: DescriptorList, required: bool = False) -> ResolvedPathSet:
        """Resolve descriptors into a set of absolute file paths.

        Args:
            descriptors: Descriptors to resolve
            required: Whether an empty result is a configuration error

        Returns:
            Deduplicated set of absolute paths

        Raises:
            ResolutionError: If a file set's directory is missing or unreadable
            ConfigurationError: If required and nothing was found
        """
        found: set[Path] = set()

        for descriptor in descriptors:
            if isinstance(descriptor, FileDescriptor):
                found.add(self._anchor(descriptor.path).absolute())
            else:
                found.update(self._expand(descriptor))

        if required and not found:
            raise ConfigurationError("You must specify at least one source file.")

        logger.debug(f"Resolved {len(descriptors)} descriptors into {len(found)} files")
        return ResolvedPathSet.of(found)

    def _expand(self, descriptor: FileSetDescriptor) -> set[Path]:
        base_dir = self._anchor(descriptor.base_dir)
        if not base_dir.is_dir():
            raise ResolutionError(f"Source directory {base_dir} does not exist.")

        try:
            included: set[Path] = set()
            for pattern in descriptor.includes:
                included.update(self._scan(base_dir, pattern))
            for pattern in descriptor.excludes:
                included.difference_update(self._scan(base_dir, pattern))
        except OSError as e:
            raise ResolutionError(f"Failed to scan {base_dir}: {e}") from e

        logger.debug(f"{base_dir}: {len(included)} files match {list(descriptor.includes)}")
        return included

    def _scan(self, base_dir: Path, pattern: str) -> set[Path]:
        # Scanners may report paths relative to the directory they scanned
        return {p if p.is_absolute() else base_dir / p for p in self.scanner.scan(base_dir, pattern)}
