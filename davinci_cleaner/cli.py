"""Command-line entry point for the unused image cleaner."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .cleaner import apply_cleanup, prepare_scan, run_scan, run_undo
from .config import (
    BACKUP_DIR_NAME,
    DEFAULT_REFERENCE_PATTERN,
    URL_PREFIX_ENV,
    CleanerConfig,
    ConfigurationError,
)
from .extractor import ReferenceExtractor
from .models import ScanReport
from .report import Reporter, make_console
from .scanner import sample_reference

logger = logging.getLogger("davinci_cleaner.cli")

EXIT_CONFIG_ERROR = 1
EXIT_ABORTED = 130


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return ("scan",)
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    return ("scan", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cwd",
        default=None,
        help="Working directory holding the backup folder (default: current directory)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable coloured output",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )


def _add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", nargs="?", help="Folder holding html/js/css/xml sources")
    parser.add_argument("assets", nargs="?", help="Folder holding the images to reconcile")
    parser.add_argument("--source", dest="source_opt", default=None, help="Source folder")
    parser.add_argument("--assets", dest="assets_opt", default=None, help="Assets folder")
    parser.add_argument(
        "--url-prefix",
        default=None,
        help=f"URL segment to crop from references before resolving them (env: {URL_PREFIX_ENV})",
    )
    parser.add_argument(
        "--pattern",
        default=DEFAULT_REFERENCE_PATTERN,
        help="Regular expression used to find image references",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose mode",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help=f"Force delete instead of moving files into {BACKUP_DIR_NAME}",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation or a URL prefix",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report unused images",
    )
    _add_common_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="davinci-cleaner",
        description="Find images no html/js/css/xml file references and move them to a backup.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan", help="Report unused images and optionally back them up"
    )
    _add_scan_arguments(scan_parser)

    undo_parser = subparsers.add_parser(
        "undo", help=f"Restore every file held in {BACKUP_DIR_NAME}"
    )
    _add_common_arguments(undo_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(console: Console, debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=debug)],
        force=True,
    )


def _interactive(args: argparse.Namespace) -> bool:
    return not getattr(args, "yes", False) and sys.stdin.isatty()


def _ask_folder(
    label: str, value: Optional[str], console: Console, interactive: bool
) -> str:
    if value:
        return value
    if not interactive:
        raise ConfigurationError(f"{label} is required when running non-interactively")
    answer = Prompt.ask(label, console=console).strip()
    if not answer:
        raise ConfigurationError(f"{label} is required")
    return answer


def _resolve_url_prefix(
    args: argparse.Namespace,
    config: CleanerConfig,
    extractor: ReferenceExtractor,
    console: Console,
) -> Optional[str]:
    """Settle the URL prefix before scanning: flag, environment, then a prompt."""
    if args.url_prefix is not None:
        return args.url_prefix or None
    env_prefix = os.getenv(URL_PREFIX_ENV)
    if env_prefix:
        logger.debug("%s is set to %s", URL_PREFIX_ENV, env_prefix)
        return env_prefix
    if not _interactive(args):
        return None

    sample = sample_reference(config.source_root, extractor, config.source_extensions)
    if sample is None:
        return None
    console.print(f"Select prefix (cropped section):\n[asset]{escape(sample)}[/]")
    return Prompt.ask("Url Prefix", default="", console=console).strip() or None


def _run_scan(args: argparse.Namespace, console: Console, working_dir: str) -> None:
    interactive = _interactive(args)
    source = _ask_folder("Source Folder", args.source_opt or args.source, console, interactive)
    assets = _ask_folder("Assets Folder", args.assets_opt or args.assets, console, interactive)
    config = CleanerConfig.from_inputs(
        working_dir,
        source,
        assets,
        reference_pattern=args.pattern,
        verbose=args.verbose,
        force_delete=args.force,
    )
    extractor = prepare_scan(config)
    config.url_prefix = _resolve_url_prefix(args, config, extractor, console)

    reporter = Reporter(console, working_dir, verbose=config.verbose)
    report = run_scan(config, extractor)
    reporter.scan(report)
    if args.dry_run:
        return

    def confirm(scan: ScanReport) -> bool:
        if args.yes:
            return True
        return Confirm.ask("Delete all files?", default=True, console=console)

    result = apply_cleanup(config, report, confirm)
    if result is not None:
        reporter.batch(result, "Deleted" if config.force_delete else "Backed up")


def _run_undo(args: argparse.Namespace, console: Console, working_dir: str) -> None:
    config = CleanerConfig(working_dir=working_dir)
    result = run_undo(config)
    Reporter(console, working_dir).undo(result, config.backup_root)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    console = make_console(color=not args.no_color)
    _configure_logging(console, args.debug)
    working_dir = os.path.abspath(args.cwd or os.getcwd())

    try:
        if args.command == "undo":
            _run_undo(args, console, working_dir)
        else:
            _run_scan(args, console, working_dir)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc
    except (KeyboardInterrupt, EOFError):
        console.print("Aborted.")
        raise SystemExit(EXIT_ABORTED) from None


if __name__ == "__main__":
    main()
