"""Find the process IDs of running programs."""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence

from .process import ProcessInformation, walk_process

PROG = "pidof"

_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_USIZE_MAX = 2**64 - 1


def _file_name(path: str) -> str:
    """The last component of ``path``, or an empty string if it has none."""
    name = PurePosixPath(path).name
    return "" if name == ".." else name


def match_process_name(
    process: ProcessInformation,
    name_to_match: str,
    with_workers: bool,
    match_scripts: bool,
) -> bool:
    """Whether ``process`` runs the program called ``name_to_match``.

    Processes without a command line (kernel workers) are only considered
    when ``with_workers`` is set; with ``match_scripts`` a shell running a
    script of that name also matches.
    """
    words = process.cmdline.split(" ")
    path = words[0]

    if not path:
        if not with_workers:
            return False
        return process.name() == name_to_match

    if _file_name(path) == name_to_match:
        return True

    # A script run as `./script.sh` shows up as `/bin/sh ./script.sh` with the
    # (possibly truncated) name `script.sh`, hence the prefix check.
    if match_scripts and len(words) > 1:
        script = _file_name(words[1])
        if not script:
            return False
        return script == name_to_match and script.startswith(process.name())

    return False


def collect_matched_pids(
    processes: Iterable[ProcessInformation],
    program_names: Iterable[str],
    with_workers: bool = False,
    match_scripts: bool = False,
    omit_pids: Iterable[int] = (),
    threads: bool = False,
    single_shot: bool = False,
) -> List[int]:
    """Ids of the processes running each program, newest first per program."""
    processes = list(processes)
    omitted = set(omit_pids)
    collected: List[int] = []

    for program in program_names:
        found: List[int] = []
        for process in processes:
            if process.pid in omitted:
                continue
            if not match_process_name(process, program, with_workers, match_scripts):
                continue
            if threads:
                found.extend(process.thread_ids())
            else:
                found.append(process.pid)

        found.sort(reverse=True)
        collected.extend(found[:1] if single_shot else found)

    return collected


def _pid_list(text: str) -> List[int]:
    pids = []
    for part in text.split(","):
        if not _UNSIGNED_RE.fullmatch(part) or int(part) > _USIZE_MAX:
            raise argparse.ArgumentTypeError(f"invalid value '{part}'")
        pids.append(int(part))
    return pids


def build_parser() -> argparse.ArgumentParser:
    """The command-line parser for pidof."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Find the process ID of a running program",
    )
    parser.add_argument("-V", "--version", action="version", version=f"{PROG} 0.0.1")
    parser.add_argument("program_names", metavar="program-name", nargs="*",
                        help="Program name.")
    parser.add_argument("-S", "-d", "--separator", metavar="SEP", dest="separator",
                        default=" ", help="Use SEP as separator between PIDs")
    parser.add_argument("-o", "--omit-pid", metavar="PID", dest="omit_pids",
                        action="append", type=_pid_list, default=[],
                        help="Omit results with a given PID")
    parser.add_argument("-q", dest="quiet", action="store_true",
                        help="Quiet mode. Do not display output")
    parser.add_argument("-s", "--single-shot", dest="single_shot", action="store_true",
                        help="Only return one PID")
    parser.add_argument("-t", "--lightweight", dest="threads", action="store_true",
                        help="Show thread ids instead of process ids")
    parser.add_argument("-w", "--with-workers", dest="with_workers", action="store_true",
                        help="Show kernel worker threads as well")
    parser.add_argument("-x", dest="match_scripts", action="store_true",
                        help="Return PIDs of shells running scripts with a matching name")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run pidof and return its exit status."""
    args = build_parser().parse_args(argv)

    if not args.program_names:
        return 1

    omit = [pid for group in args.omit_pids for pid in group]
    collected = collect_matched_pids(
        walk_process(),
        args.program_names,
        with_workers=args.with_workers,
        match_scripts=args.match_scripts,
        omit_pids=omit,
        threads=args.threads,
        single_shot=args.single_shot,
    )
    if not collected:
        return 1

    if not args.quiet:
        print(args.separator.join(str(pid) for pid in collected))
    return 0


if __name__ == "__main__":
    sys.exit(main())