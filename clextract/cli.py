"""CLI entry point: parses the selection, drives the engine, reports to stdout."""

import argparse
import sys
from typing import List, Optional, Tuple

from .config import load_config
from .engine import run_engine
from .errors import ExtractError
from .stats import RunStats


def _split_compiler_args(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split *argv* at ``--``; everything after it goes to the compiler."""
    if "--" in argv:
        i = argv.index("--")
        return argv[:i], argv[i + 1 :]
    return argv, []


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clextract",
        description="Extract a range of lines of a C/C++ function into a new function.",
        epilog="Arguments after -- are passed to the compiler.",
    )
    parser.add_argument("sources", nargs="+", metavar="source")
    parser.add_argument(
        "-p",
        dest="build_path",
        metavar="build-path",
        help="build path containing compile_commands.json",
    )
    parser.add_argument(
        "--first", type=int, required=True, help="first line of the code to extract"
    )
    parser.add_argument(
        "--last", type=int, required=True, help="last line of the code to extract"
    )
    parser.add_argument(
        "--name", required=True, help="name of the new function to create"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="print a unified diff instead of rewriting files",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="omit per-parameter rename details from the messages",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    own, compiler_args = _split_compiler_args(list(argv))
    args = _build_parser().parse_args(own)

    config = load_config()
    run_stats = RunStats()
    try:
        for message in run_engine(
            args.sources,
            args.first,
            args.last,
            args.name,
            build_path=args.build_path,
            extra_args=compiler_args,
            config=config,
            stats=run_stats,
            dry_run=args.dry_run,
            verbose=not args.quiet,
        ):
            print(message)
    except ExtractError as exc:
        print(f"clextract: {exc}", file=sys.stderr)
        sys.exit(1)
    if not args.dry_run and not run_stats.files_edited:
        print("clextract: no code was extracted", file=sys.stderr)
    for line in run_stats.format_summary():
        print(line)
