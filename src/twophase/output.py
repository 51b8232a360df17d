"""
Timestamped progress output for twophase.

Every line is prefixed with the time elapsed since the program started, in
MM:SS.cc format (minutes:seconds.centiseconds), so a slow compile or link
step is easy to spot in a build log.

Example output:
    00:00.01 twophase v0.3.0
    00:00.02 [1/3] Resolving sources...
    00:00.02       4 primary, 2 auxiliary
    00:00.03 [2/3] Compiling 1 of 4 sources...
    00:01.87 [3/3] Linking installer.msi...

Usage:
    from twophase.output import log_phase, log_detail

    log_phase(1, 3, "Resolving sources...")
    log_detail("4 primary, 2 auxiliary")
"""

import sys
import time
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    If not called explicitly, it is called automatically on first log.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If True, verbose-only messages are printed as well.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    line = f"{format_timestamp()} {message}\n"
    stream = _output_stream if _output_stream is not None else sys.stdout
    stream.write(line)
    stream.flush()


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a pipeline phase message.

    Format: [N/M] message
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_file(role: str, filename: str, skipped: bool = False, verbose_only: bool = True) -> None:
    """
    Log a per-file decision.

    Format: [role] filename (up to date)
    """
    if verbose_only and not _verbose:
        return
    suffix = " (up to date)" if skipped else ""
    _print(f"      [{role}] {filename}{suffix}")


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")


def log_build_complete(build_time: float, verbose_only: bool = False) -> None:
    """
    Log build completion message.

    Args:
        build_time: Total build time in seconds
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"Build time: {build_time:.2f}s")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")
