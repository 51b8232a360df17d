"""CLI command implementations."""

from .clean import CleanResult, clean_outputs

__all__ = ["CleanResult", "clean_outputs"]
