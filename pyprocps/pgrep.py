"""Look up processes by name and other attributes."""

from __future__ import annotations

import argparse
import sys
from typing import Iterable, List, Optional, Sequence

from .process import ProcessInformation
from .process_matcher import MatchError, add_matcher_arguments, find_matching_pids, get_match_settings

PROG = "pgrep"


def build_parser() -> argparse.ArgumentParser:
    """The command-line parser for pgrep."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Search the running processes and list the PIDs that match the criteria.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"{PROG} 0.0.1")
    parser.add_argument("-d", "--delimiter", metavar="string", default="\n",
                        help="specify output delimiter")
    parser.add_argument("-l", "--list-name", action="store_true",
                        help="list PID and process name")
    parser.add_argument("-a", "--list-full", action="store_true",
                        help="list PID and full command line")
    parser.add_argument("-w", "--lightweight", action="store_true", help="list all TID")
    add_matcher_arguments(parser, "Name of the program to find the PID of", True)
    return parser


def format_output(
    processes: Iterable[ProcessInformation],
    count: bool,
    delimiter: str,
    list_full: bool,
    list_name: bool,
) -> str:
    """Render the selected processes the way pgrep prints them."""
    processes = list(processes)
    if count:
        return str(len(processes))
    lines: List[str]
    if list_full:
        lines = [
            f"{p.pid} {p.cmdline}" if p.cmdline else f"{p.pid} [{p.name()}]"
            for p in processes
        ]
    elif list_name:
        lines = [f"{p.pid} {p.name()}" for p in processes]
    else:
        lines = [str(p.pid) for p in processes]
    return delimiter.join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run pgrep and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = get_match_settings(args, parser.prog)
    except MatchError as exc:
        print(f"{parser.prog}: {exc}", file=sys.stderr)
        return exc.exit_code
    settings.threads = args.lightweight

    processes = find_matching_pids(settings)
    output = format_output(processes, args.count, args.delimiter, args.list_full, args.list_name)
    if output:
        print(output)
    return 0 if processes else 1


if __name__ == "__main__":
    sys.exit(main())