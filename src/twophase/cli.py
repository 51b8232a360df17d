"""
Command-line interface for twophase.

This module provides the `twophase` CLI tool for incremental two-phase builds.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console

from twophase import __version__
from twophase.build import Mode, PipelineOrchestrator
from twophase.build.errors import PipelineError
from twophase.commands import clean_outputs
from twophase.config import BuildFileConfig
from twophase.output import init_timer, log_build_complete, log_header, set_verbose

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    target: Optional[str] = None
    mode: Optional[str] = None
    verbose: bool = False
    log_file: Optional[Path] = None


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    target: Optional[str] = None
    verbose: bool = False


def setup_logging(verbose: bool, log_file: Optional[Path] = None) -> None:
    """Configure the root logger for a CLI run."""
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(file_handler)


def _select_target(config: BuildFileConfig, target: Optional[str]) -> str:
    if target:
        return target
    detected = config.get_default_target()
    if not detected:
        raise PipelineError(f"No targets found in {config.ini_path.name}")
    return detected


def build_command(args: BuildArgs) -> int:
    """Build a target incrementally.

    Examples:
        twophase build                    # Build the default target
        twophase build installer/        # Build a specific project
        twophase build -t msi            # Build the 'msi' target
        twophase build -m compile        # Only run the compile phase
        twophase build --verbose         # Show per-file decisions
    """
    init_timer()
    set_verbose(args.verbose)
    log_header("twophase", __version__)

    try:
        config = BuildFileConfig.from_project(args.project_dir)
        target = _select_target(config, args.target)
        mode = Mode.parse(args.mode) if args.mode else None
        params = config.to_build_params(target, project_dir=args.project_dir, mode=mode, verbose=args.verbose)

        console.print(f"Building target: [bold]{target}[/bold] (mode={params.mode})")
        result = PipelineOrchestrator().build(params)

    except PipelineError as e:
        console.print()
        console.print("[bold red]✗ Configuration error[/bold red]")
        console.print(str(e), markup=False)
        return 1

    except KeyboardInterrupt:
        console.print()
        console.print("[bold yellow]✗ Build interrupted[/bold yellow]")
        return 130

    console.print()
    if result.success:
        console.print("[bold green]✓ Build successful![/bold green]")
        console.print(result.message, markup=False)
        log_build_complete(result.build_time)
        return 0

    console.print("[bold red]✗ Build failed![/bold red]")
    console.print(result.message, markup=False)
    return 1


def clean_command(args: CleanArgs) -> int:
    """Delete intermediate targets and the final artifact of a target.

    Examples:
        twophase clean                   # Clean the default target
        twophase clean -t msi            # Clean the 'msi' target
    """
    set_verbose(args.verbose)

    try:
        config = BuildFileConfig.from_project(args.project_dir)
        target = _select_target(config, args.target)
        params = config.to_build_params(target, project_dir=args.project_dir, verbose=args.verbose)
        result = clean_outputs(params)
    except PipelineError as e:
        console.print("[bold red]✗ Clean failed[/bold red]")
        console.print(str(e), markup=False)
        return 1

    console.print(f"[bold green]✓ Removed {len(result.removed)} files[/bold green] from target {target}")
    return 0


def main() -> None:
    """twophase - incremental compile/link builds for two-phase toolchains."""
    parser = argparse.ArgumentParser(
        prog="twophase",
        description="twophase - incremental compile/link builds for two-phase toolchains",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"twophase {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Compile stale sources and relink if needed",
    )
    build_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory containing twophase.ini (default: current directory)",
    )
    build_parser.add_argument(
        "-t",
        "--target",
        default=None,
        help="Target to build (default: from twophase.ini)",
    )
    build_parser.add_argument(
        "-m",
        "--mode",
        default=None,
        help="compile, link or both (overrides twophase.ini)",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show per-file decisions and tool output",
    )
    build_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write a debug log to this file",
    )

    # Clean command
    clean_parser = subparsers.add_parser(
        "clean",
        help="Delete intermediate targets and the final artifact",
    )
    clean_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory containing twophase.ini (default: current directory)",
    )
    clean_parser.add_argument(
        "-t",
        "--target",
        default=None,
        help="Target to clean (default: from twophase.ini)",
    )
    clean_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="List removed files",
    )

    parsed = parser.parse_args()

    if parsed.command == "build":
        setup_logging(parsed.verbose, parsed.log_file)
        sys.exit(
            build_command(
                BuildArgs(
                    project_dir=parsed.project_dir,
                    target=parsed.target,
                    mode=parsed.mode,
                    verbose=parsed.verbose,
                    log_file=parsed.log_file,
                )
            )
        )
    elif parsed.command == "clean":
        setup_logging(parsed.verbose)
        sys.exit(clean_command(CleanArgs(project_dir=parsed.project_dir, target=parsed.target, verbose=parsed.verbose)))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
