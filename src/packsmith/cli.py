"""
Command-line interface for packsmith.

This module provides the `packsmith` CLI tool for installing modpacks.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from packsmith import __version__
from packsmith.config import InstallerConfig
from packsmith.output import init_timer, log, log_detail, log_error, log_header, log_phase, log_success, log_warning, set_verbose
from packsmith.packs import InstallProgressDisplay, PackageRef, PackInstallTask, Stage, TaskOutcome
from packsmith.packs.models import WORK_STAGES

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class InstallArgs:
    """Arguments for the install command."""

    pack: str
    version: str
    dest: Path
    name: Optional[str] = None
    icon: str = "default"
    server: Optional[str] = None
    cache_dir: Optional[Path] = None
    log_file: Optional[Path] = None
    verbose: bool = False
    tui: Optional[bool] = None


def setup_logging(verbose: bool, log_file: Optional[Path] = None) -> None:
    """Configure the root logger for a CLI run.

    Warnings go to stderr (debug and up with --verbose). A log file, if
    given, always receives debug output.
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class _TextCallback:
    """Plain-text progress for non-TTY output: one line per stage change."""

    def __init__(self) -> None:
        self._last_stage: Optional[Stage] = None

    def on_progress(self, task_name: str, stage: Stage, progress: float, total: float, detail: str) -> None:
        if stage == self._last_stage or stage.is_terminal:
            return
        self._last_stage = stage
        if stage in WORK_STAGES:
            log_phase(WORK_STAGES.index(stage) + 1, len(WORK_STAGES), detail)


def _is_tty() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def install_command(args: InstallArgs) -> None:
    """Install a modpack version into a new instance directory.

    Examples:
        packsmith install SkyFactory4 4.2.4 --dest instances/sf4
        packsmith install SkyFactory4 4.2.4 --dest instances/sf4 --name "Sky Factory"
        packsmith install MyPack 1.0 --dest out --server https://mirror.example/atl/
    """
    init_timer()
    set_verbose(args.verbose)
    log_header("packsmith", __version__)

    ref = PackageRef(args.pack, args.version)
    config = InstallerConfig.from_env(download_server=args.server, cache_root=args.cache_dir)
    instance_name = args.name or f"{args.pack} {args.version}"

    if args.dest.exists() and any(args.dest.iterdir()):
        log_warning(f"Destination {args.dest} is not empty; existing files may be overwritten")

    log(f"Installing {ref} into {args.dest}")
    log_detail(f"Server: {config.download_server}", verbose_only=True)
    log_detail(f"Cache: {config.cache_root}", verbose_only=True)

    use_tui = _is_tty() if args.tui is None else args.tui
    display = InstallProgressDisplay(console=None, title=f"Installing {ref}") if use_tui else None
    callback = display if display is not None else _TextCallback()

    task = PackInstallTask(ref, args.dest, instance_name, args.icon, config=config, callback=callback)

    if display is not None:
        display.start()
    try:
        try:
            task.start()
            result = task.wait()
        except KeyboardInterrupt:
            task.abort()
            result = task.wait()
    finally:
        if display is not None:
            display.stop()

    if result.outcome is TaskOutcome.SUCCEEDED:
        log_success(f"✓ Installed {ref} as '{instance_name}' in {result.elapsed:.1f}s")
        sys.exit(0)
    elif result.outcome is TaskOutcome.ABORTED:
        log_warning("✗ Install aborted")
        sys.exit(130)  # Standard exit code for SIGINT
    else:
        log_error(f"✗ Install failed: {result.reason}")
        if result.location is not None:
            line, column = result.location
            log_detail(f"at line {line}, column {column}")
        log_detail(f"The directory {args.dest} may contain partial files; remove it before retrying.")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packsmith",
        description="packsmith - modpack installer",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"packsmith {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    install_parser = subparsers.add_parser(
        "install",
        help="Install a modpack version into an instance directory",
    )
    install_parser.add_argument("pack", help="Pack name on the download server")
    install_parser.add_argument("pack_version", metavar="version", help="Pack version label")
    install_parser.add_argument(
        "-d",
        "--dest",
        type=Path,
        required=True,
        help="Instance directory to create",
    )
    install_parser.add_argument(
        "-n",
        "--name",
        default=None,
        help="Instance display name (default: '<pack> <version>')",
    )
    install_parser.add_argument(
        "--icon",
        default="default",
        help="Instance icon key (default: default)",
    )
    install_parser.add_argument(
        "--server",
        default=None,
        help="Download server base URL (default: $PACKSMITH_DOWNLOAD_SERVER or the public server)",
    )
    install_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Cache directory (default: $PACKSMITH_CACHE_DIR or ~/.packsmith/cache)",
    )
    install_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write debug logs to this file",
    )
    install_parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable the live progress display",
    )
    install_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """packsmith - modpack installer."""
    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if parsed_args.command == "install":
        if parsed_args.dest.exists() and not parsed_args.dest.is_dir():
            print(f"\033[1;31m✗ Error: Path is not a directory: {parsed_args.dest}\033[0m")
            sys.exit(2)

        args = InstallArgs(
            pack=parsed_args.pack,
            version=parsed_args.pack_version,
            dest=parsed_args.dest,
            name=parsed_args.name,
            icon=parsed_args.icon,
            server=parsed_args.server,
            cache_dir=parsed_args.cache_dir,
            log_file=parsed_args.log_file,
            verbose=parsed_args.verbose,
            tui=False if parsed_args.no_tui else None,
        )
        setup_logging(args.verbose, args.log_file)
        install_command(args)


if __name__ == "__main__":
    main()
