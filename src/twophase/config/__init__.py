"""Build-file parsing for twophase."""

from .ini_parser import BUILD_FILE_NAME, BuildFileConfig, parse_descriptors, parse_parameters

__all__ = ["BUILD_FILE_NAME", "BuildFileConfig", "parse_descriptors", "parse_parameters"]
