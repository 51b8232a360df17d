"""
Build-file parser for twophase.

A project describes its builds in ``twophase.ini``:

    [twophase]
    default_targets = installer

    [target:installer]
    sources =
        src/**/*.wxs
        !src/legacy/*.wxs
        product.wxs
    more_sources =
        include/*.wxi
    intermediate_dir = obj
    output = out/installer.msi
    parameters =
        Version=1.2.3
        Platform=x64

Source lines containing glob characters become file sets rooted at their
leading non-glob directories; a line starting with ``!`` excludes a pattern
from the file set above it. Other lines name single files.
"""

import configparser
import logging
import os
from pathlib import Path, PurePath
from typing import Dict, List, Optional

from ..build.build_context import BuildParams, Mode, Parameter, Toolchain
from ..build.errors import ConfigurationError
from ..build.source_resolver import DescriptorList, FileDescriptor, FileSetDescriptor

logger = logging.getLogger(__name__)

BUILD_FILE_NAME = "twophase.ini"
TOOLCHAIN_HOME_ENV = "TWOPHASE_TOOLCHAIN_HOME"

_TARGET_PREFIX = "target:"
_GLOB_CHARS = set("*?[")
_TRUE_VALUES = {"1", "yes", "true", "on"}
_FALSE_VALUES = {"0", "no", "false", "off"}


def _split_lines(value: str) -> List[str]:
    lines = []
    for line in value.splitlines():
        line = line.strip()
        if line and not line.startswith(("#", ";")):
            lines.append(line)
    return lines


def _split_glob(line: str) -> tuple[Path, str]:
    """Split 'src/**/*.wxs' into (Path('src'), '**/*.wxs')."""
    parts = PurePath(line).parts
    for index, part in enumerate(parts):
        if _GLOB_CHARS & set(part):
            base = Path(*parts[:index]) if index else Path(".")
            return base, "/".join(parts[index:])
    return Path(line), ""


def parse_descriptors(value: str) -> DescriptorList:
    """Parse a multi-line source list into descriptors.

    Raises:
        ConfigurationError: If an exclude line has no file set to apply to
    """
    descriptors: list = []
    for line in _split_lines(value):
        if line.startswith("!"):
            previous = descriptors[-1] if descriptors else None
            if not isinstance(previous, FileSetDescriptor):
                raise ConfigurationError(f"Exclude '{line}' must follow a file pattern")
            exclude = PurePath(line[1:].strip())
            if exclude.parts[: len(previous.base_dir.parts)] == previous.base_dir.parts:
                exclude = PurePath(*exclude.parts[len(previous.base_dir.parts) :])
            descriptors[-1] = FileSetDescriptor(
                previous.base_dir, previous.includes, previous.excludes + (exclude.as_posix(),)
            )
            continue

        base, pattern = _split_glob(line)
        if pattern:
            descriptors.append(FileSetDescriptor(base, (pattern,)))
        else:
            descriptors.append(FileDescriptor(base))

    return DescriptorList(tuple(descriptors))


def parse_parameters(value: str) -> tuple[Parameter, ...]:
    """Parse 'name=value' lines, keeping their order.

    Raises:
        ConfigurationError: If a line has no '='
    """
    parameters = []
    for line in _split_lines(value):
        name, sep, param_value = line.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"Parameter '{line}' must have the form name=value")
        parameters.append(Parameter(name.strip(), param_value.strip()))
    return tuple(parameters)


def _parse_bool(key: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got '{value}'")


class BuildFileConfig:
    """Parsed twophase.ini."""

    def __init__(self, ini_path: Path):
        """
        Load a build file.

        Args:
            ini_path: Path to twophase.ini

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        self.ini_path = ini_path
        if not ini_path.exists():
            raise ConfigurationError(f"{ini_path.name} not found in {ini_path.parent}")

        self.config = configparser.ConfigParser(interpolation=None)
        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Failed to parse {ini_path}: {e}") from e

        logger.debug(f"Loaded {ini_path} with targets: {self.get_targets()}")

    @classmethod
    def from_project(cls, project_dir: Path) -> "BuildFileConfig":
        return cls(project_dir / BUILD_FILE_NAME)

    def get_targets(self) -> List[str]:
        return [s[len(_TARGET_PREFIX):] for s in self.config.sections() if s.startswith(_TARGET_PREFIX)]

    def get_default_target(self) -> Optional[str]:
        """Return the target built when none is named.

        Uses ``default_targets`` from the [twophase] section when present,
        otherwise the first target in the file.
        """
        if self.config.has_option("twophase", "default_targets"):
            defaults = _split_lines(self.config.get("twophase", "default_targets").replace(",", "\n"))
            if defaults:
                return defaults[0]

        targets = self.get_targets()
        return targets[0] if targets else None

    def get_target_config(self, name: str) -> Dict[str, str]:
        """Raw key/value pairs of a target section.

        Raises:
            ConfigurationError: If the target does not exist
        """
        section = f"{_TARGET_PREFIX}{name}"
        if not self.config.has_section(section):
            available = ", ".join(self.get_targets()) or "none"
            raise ConfigurationError(f"Target '{name}' not found in {self.ini_path.name} (available: {available})")
        return dict(self.config.items(section))

    def to_build_params(
        self,
        name: str,
        project_dir: Optional[Path] = None,
        mode: Optional[Mode] = None,
        verbose: bool = False,
    ) -> BuildParams:
        """Build the BuildParams for a target.

        Args:
            name: Target name
            project_dir: Anchor for relative paths (the build file's directory if None)
            mode: Overrides the mode from the build file
            verbose: Verbose output

        Raises:
            ConfigurationError: If the target is missing or a value is invalid
        """
        section = self.get_target_config(name)
        project_dir = project_dir if project_dir is not None else self.ini_path.parent

        toolchain_home = section.get("toolchain_home") or os.environ.get(TOOLCHAIN_HOME_ENV)
        defaults = Toolchain()
        toolchain = Toolchain(
            compile_executable=section.get("compile_tool", defaults.compile_executable),
            link_executable=section.get("link_tool", defaults.link_executable),
            object_extension=section.get("object_extension", defaults.object_extension),
            home=Path(toolchain_home) if toolchain_home else None,
            vm=section.get("vm") or None,
        )

        sources = parse_descriptors(section.get("source", ""))
        sources = DescriptorList(sources.descriptors + parse_descriptors(section.get("sources", "")).descriptors)

        return BuildParams(
            project_dir=project_dir,
            sources=sources,
            more_sources=parse_descriptors(section.get("more_sources", "")),
            intermediate_dir=Path(section["intermediate_dir"]) if section.get("intermediate_dir") else None,
            final_artifact=Path(section["output"]) if section.get("output") else None,
            mode=mode if mode is not None else Mode.parse(section.get("mode", "both")),
            parameters=parse_parameters(section.get("parameters", "")),
            toolchain=toolchain,
            fail_on_error=_parse_bool("fail_on_error", section.get("fail_on_error", "true")),
            output_file=Path(section["output_file"]) if section.get("output_file") else None,
            verbose=verbose,
        )
