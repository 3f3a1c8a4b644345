#!/usr/bin/env python3
"""Command-line entry point.

Usage:
    ps-config-utility --all [--out-file FILE]
    ps-config-utility --in-engine NAME [--out-file FILE]
    ps-config-utility --in-engine NAME --out-engine NAME [--dry-run] [--force]
    ps-config-utility --in-file FILE --out-engine NAME [--dry-run] [--force]
    ps-config-utility --in-file FILE [--out-file FILE]
    ps-config-utility --compare ENGINE1 ENGINE2

Environment variables:
    PSCONFIG_SERVER      Platform server (same as --server)
    PSCONFIG_USERNAME    User to authenticate as
    PSCONFIG_PASSWORD    Password; prompted for when unset
"""
import argparse
import getpass
import logging
import sys
from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .config.settings import DEFAULT_CLIENT_ID, ToolSettings, load_settings, validate_server
from .directory.base import EngineDirectory
from .directory.websdk import WebSdkDirectory, WebSdkSession
from .errors import PsConfigError
from .orchestrator import ConfigOrchestrator, ConfirmCallback, summarize_plan
from .snapshot.diff import render_diff
from .utils.audit_log import setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    """Operational mode selected by the argument combination."""
    DUMP_ALL = "dump-all"
    BACKUP = "backup"
    COPY = "copy"
    RESTORE = "restore"
    SAVE_LOADED = "save-loaded"
    COMPARE = "compare"


PUSH_MODES = (Mode.COPY, Mode.RESTORE)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ps-config-utility",
        description="Back up, restore and compare processing engine configuration "
                    "(folders, Address Range, Start Time)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Back up one engine to a file
    ps-config-utility --server tpp.example.com --in-engine ENGINE01 --out-file engine01.json

    # Restore it onto another engine, showing the changes first
    ps-config-utility --server tpp.example.com --in-file engine01.json --out-engine ENGINE02 --dry-run

    # Compare a saved file with a live engine
    ps-config-utility --server tpp.example.com --compare engine01.json ENGINE01

Note: --all output is a one-way dump and cannot be used with --in-file or --compare.
""",
    )
    source = parser.add_argument_group("source and target")
    source.add_argument("--all", action="store_true", help="Dump every engine")
    source.add_argument("--in-engine", metavar="NAME", help="Engine to read (name, path or pattern)")
    source.add_argument("--in-file", metavar="PATH", help="Snapshot file to read")
    source.add_argument("--out-engine", metavar="NAME", help="Engine to push the configuration to")
    source.add_argument("--out-file", metavar="PATH", help="File to write the snapshot to (default: stdout)")
    source.add_argument("--compare", action="store_true", help="Compare ENGINE1 with ENGINE2")
    source.add_argument(
        "engines",
        nargs="*",
        metavar="ENGINE",
        help="With --compare: two engine names/patterns or snapshot files",
    )

    push = parser.add_argument_group("push options")
    push.add_argument("--dry-run", action="store_true", help="Show the changes a push would make")
    push.add_argument("-f", "--force", action="store_true", help="Push without asking for confirmation")

    conn = parser.add_argument_group("connection")
    conn.add_argument("--server", metavar="HOST", help="Platform server name")
    conn.add_argument(
        "--client-id",
        metavar="ID",
        default=None,
        help=f"OAuth client id (default: {DEFAULT_CLIENT_ID})",
    )
    conn.add_argument("--username", metavar="USER", help="User to authenticate as")
    conn.add_argument("--config", metavar="PATH", help="Settings file (psconfig.yaml)")

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def select_mode(args: argparse.Namespace) -> Mode:
    """Pick the mode from mutually exclusive argument combinations.

    Raises:
        ValueError: If the combination is not valid
    """
    if args.compare:
        if args.all or args.in_engine or args.in_file or args.out_engine or args.out_file:
            raise ValueError("--compare takes only ENGINE1 and ENGINE2")
        if len(args.engines) != 2:
            raise ValueError("--compare requires exactly two arguments: ENGINE1 ENGINE2")
        mode = Mode.COMPARE
    elif args.engines:
        raise ValueError("positional ENGINE arguments are only valid with --compare")
    elif args.all:
        if args.in_engine or args.in_file or args.out_engine:
            raise ValueError("--all cannot be combined with --in-engine, --in-file or --out-engine")
        mode = Mode.DUMP_ALL
    elif args.in_engine and args.in_file:
        raise ValueError("--in-engine and --in-file are mutually exclusive")
    elif args.in_engine:
        mode = Mode.COPY if args.out_engine else Mode.BACKUP
    elif args.in_file:
        mode = Mode.RESTORE if args.out_engine else Mode.SAVE_LOADED
    elif args.out_engine:
        raise ValueError("--out-engine requires --in-engine or --in-file")
    else:
        raise ValueError("nothing to do: use --all, --in-engine, --in-file or --compare")

    if mode not in PUSH_MODES and (args.dry_run or args.force):
        raise ValueError("--dry-run and --force apply only when pushing to --out-engine")
    return mode


def prompt_confirm(message: str) -> bool:
    """Ask on the terminal; anything but yes declines."""
    print(message, file=sys.stderr)
    try:
        answer = input("Continue? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def write_output(text: str, out_file: Optional[str]) -> None:
    if out_file:
        Path(out_file).write_text(text, encoding="utf-8")
        logger.info(f"Wrote {out_file}")
    else:
        sys.stdout.write(text)


def run_mode(orchestrator: ConfigOrchestrator, mode: Mode, args: argparse.Namespace) -> int:
    """Run one mode to completion."""
    logger.info(f"Mode: {mode.value}")

    if mode == Mode.DUMP_ALL:
        write_output(orchestrator.dump_all().to_json(), args.out_file)
    elif mode == Mode.BACKUP:
        write_output(orchestrator.backup(args.in_engine).to_json(), args.out_file)
    elif mode == Mode.SAVE_LOADED:
        write_output(orchestrator.load_file(args.in_file).to_json(), args.out_file)
    elif mode in PUSH_MODES:
        snapshot = orchestrator.source_snapshot(in_engine=args.in_engine, in_file=args.in_file)
        if args.out_file:
            write_output(snapshot.to_json(), args.out_file)
        result = orchestrator.push(snapshot, args.out_engine, dry_run=args.dry_run)
        prefix = "DRY RUN: " if result.dry_run else ""
        print(f"{prefix}{summarize_plan(result.plan)}")
        if result.applied:
            print(f"Pushed {snapshot.engine_name} to {result.plan.target.path}")
        elif not result.dry_run and not result.plan.no_change:
            print("Push cancelled; no changes made")
    elif mode == Mode.COMPARE:
        lines = orchestrator.compare(args.engines[0], args.engines[1])
        if lines:
            print(render_diff(lines))
        else:
            logger.info("No differences")
    return 0


def websdk_factory(settings: ToolSettings, stack: ExitStack) -> Callable[[], EngineDirectory]:
    """Directory factory that authenticates on first use."""
    def factory() -> EngineDirectory:
        validate_server(settings.server)
        if not settings.get_password():
            settings.password = getpass.getpass(f"Password for {settings.username}@{settings.host}: ")
        session = stack.enter_context(WebSdkSession.authenticate(settings))
        return WebSdkDirectory(session)
    return factory


def main(
    argv: Optional[list[str]] = None,
    directory_factory: Optional[Callable[[], EngineDirectory]] = None,
    confirm: Optional[ConfirmCallback] = None,
) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        mode = select_mode(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(verbose=args.verbose)
    setup_audit_logging()

    with ExitStack() as stack:
        try:
            settings = load_settings(args.config, overrides={
                "server": args.server,
                "client_id": args.client_id,
                "username": args.username,
            })
            orchestrator = ConfigOrchestrator(
                directory_factory or websdk_factory(settings, stack),
                confirm=confirm or prompt_confirm,
                force=args.force,
            )
            return run_mode(orchestrator, mode, args)
        except KeyboardInterrupt:
            logger.warning("Interrupted by user")
            return 130
        except PsConfigError as e:
            logger.debug(f"{mode.value} failed", exc_info=True)
            print(f"error: {e}", file=sys.stderr)
            return 1


if __name__ == "__main__":
    sys.exit(main())
