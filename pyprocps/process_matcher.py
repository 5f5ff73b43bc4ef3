"""Process selection shared by pgrep-like commands."""

from __future__ import annotations

import argparse
import os
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Pattern, Set

from .process import ProcessInformation, Teletype, parse_teletype, walk_process, walk_threads

try:
    import grp
    import pwd
except ImportError:  # pragma: no cover - platforms without a user database
    grp = None
    pwd = None

_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1
_MAX_NAME_PATTERN_LEN = 15

_SIGNAL_NAMES = (
    "EXIT", "HUP", "INT", "QUIT", "ILL", "TRAP", "ABRT", "BUS",
    "FPE", "KILL", "USR1", "SEGV", "USR2", "PIPE", "ALRM", "TERM",
    "STKFLT", "CHLD", "CONT", "STOP", "TSTP", "TTIN", "TTOU", "URG",
    "XCPU", "XFSZ", "VTALRM", "PROF", "WINCH", "POLL", "PWR", "SYS",
)


class MatchError(Exception):
    """Invalid matching criteria; carries the exit code to report."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@dataclass
class Settings:
    """Criteria a process has to meet to be selected."""

    regex: Pattern = field(default_factory=lambda: re.compile(""))
    exact: bool = False
    full: bool = False
    ignore_case: bool = False
    inverse: bool = False
    newest: bool = False
    oldest: bool = False
    older: Optional[int] = None
    parent: Optional[Set[int]] = None
    runstates: Optional[str] = None
    terminal: Optional[Set[Teletype]] = None
    signal: int = 15
    require_handler: bool = False
    uid: Optional[Set[int]] = None
    euid: Optional[Set[int]] = None
    gid: Optional[Set[int]] = None
    pgroup: Optional[Set[int]] = None
    session: Optional[Set[int]] = None
    threads: bool = False


def _parse_unsigned(text: str, limit: int) -> int:
    if not _UNSIGNED_RE.fullmatch(text):
        raise ValueError(f"invalid digit found in string: {text!r}")
    value = int(text)
    if value > limit:
        raise ValueError(f"number too large: {text!r}")
    return value


def _u64(text: str) -> int:
    return _parse_unsigned(text, _U64_MAX)


def _argument_type(convert: Callable[[str], object]) -> Callable[[str], object]:
    def parse(text: str) -> object:
        try:
            return convert(text)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from None

    return parse


def _comma_separated(convert: Callable[[str], object]) -> Callable[[str], list]:
    def parse(text: str) -> list:
        try:
            return [convert(part) for part in text.split(",")]
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from None

    return parse


def parse_signal_value(signal_name: str) -> int:
    """Resolve a signal given by number or name (with or without ``SIG``)."""
    upper = signal_name.upper()
    if _UNSIGNED_RE.fullmatch(upper):
        value = int(upper)
        if value < len(_SIGNAL_NAMES):
            return value
        raise MatchError(f"Unknown signal '{signal_name}'", 1)
    stripped = upper
    while stripped.startswith("SIG"):
        stripped = stripped[3:]
    if stripped in _SIGNAL_NAMES:
        return _SIGNAL_NAMES.index(stripped)
    raise MatchError(f"Unknown signal '{signal_name}'", 1)


def parse_uid_or_username(value: str) -> int:
    """A numeric user id, or the id of the named user."""
    try:
        return _parse_unsigned(value, _U32_MAX)
    except ValueError:
        pass
    if pwd is not None:
        try:
            return pwd.getpwnam(value).pw_uid
        except KeyError:
            pass
    raise ValueError("invalid user name")


def parse_gid_or_group_name(value: str) -> int:
    """A numeric group id, or the id of the named group."""
    try:
        return _parse_unsigned(value, _U32_MAX)
    except ValueError:
        pass
    if grp is not None:
        try:
            return grp.getgrnam(value).gr_gid
        except KeyError:
            pass
    raise ValueError("invalid group name")


def add_matcher_arguments(
    parser: argparse.ArgumentParser, pattern_help: str, enable_v_flag: bool
) -> None:
    """Add the process-matching options to ``parser``."""
    exclusive = parser.add_mutually_exclusive_group()
    inverse_flags = ("-v", "--inverse") if enable_v_flag else ("--inverse",)
    exclusive.add_argument(*inverse_flags, dest="inverse", action="store_true",
                           help="negates the matching")
    parser.add_argument("-H", "--require-handler", action="store_true",
                        help="match only if signal handler is present")
    parser.add_argument("-c", "--count", action="store_true",
                        help="count of matching processes")
    parser.add_argument("-f", "--full", action="store_true",
                        help="use full process name to match")
    parser.add_argument("-g", "--pgroup", metavar="PGID", type=_comma_separated(_u64),
                        help="match listed process group IDs")
    parser.add_argument("-G", "--group", metavar="GID",
                        type=_comma_separated(parse_gid_or_group_name),
                        help="match real group IDs")
    parser.add_argument("-i", "--ignore-case", action="store_true",
                        help="match case insensitively")
    exclusive.add_argument("-n", "--newest", action="store_true",
                           help="select most recently started")
    exclusive.add_argument("-o", "--oldest", action="store_true",
                           help="select least recently started")
    parser.add_argument("-O", "--older", metavar="seconds", type=_argument_type(_u64),
                        help="select where older than seconds")
    parser.add_argument("-P", "--parent", metavar="PPID", type=_comma_separated(_u64),
                        help="match only child processes of the given parent")
    parser.add_argument("-s", "--session", metavar="SID", type=_comma_separated(_u64),
                        help="match session IDs")
    parser.add_argument("--signal", metavar="sig", default="SIGTERM",
                        help="signal to send (either number or name)")
    parser.add_argument("-t", "--terminal", metavar="tty", type=_comma_separated(str),
                        help="match by controlling terminal")
    parser.add_argument("-u", "--euid", metavar="ID",
                        type=_comma_separated(parse_uid_or_username),
                        help="match by effective IDs")
    parser.add_argument("-U", "--uid", metavar="ID",
                        type=_comma_separated(parse_uid_or_username),
                        help="match by real IDs")
    parser.add_argument("-x", "--exact", action="store_true",
                        help="match exactly with the command name")
    parser.add_argument("-r", "--runstates", metavar="state",
                        help="match runstates [D,S,Z,...]")
    parser.add_argument("pattern", nargs="*", help=pattern_help)


def _pattern_from(args: argparse.Namespace, prog: str) -> str:
    patterns = args.pattern or []
    if len(patterns) > 1:
        raise MatchError(
            f"only one pattern can be provided\nTry `{prog} --help' for more information.", 2
        )
    if not patterns:
        return ""
    pattern = patterns[0]
    if args.ignore_case:
        pattern = pattern.lower()
    if args.exact:
        pattern = f"^{pattern}$"
    return pattern


def _id_set(values: Optional[list]) -> Optional[Set[int]]:
    return None if values is None else set(values)


def _terminals(values: Optional[list]) -> Optional[Set[Teletype]]:
    if values is None:
        return None
    terminals = set()
    for value in values:
        try:
            terminals.add(parse_teletype(value))
        except ValueError:
            continue
    return terminals


def get_match_settings(args: argparse.Namespace, prog: str = "pgrep") -> Settings:
    """Build and validate matching criteria from parsed arguments."""
    pattern = _pattern_from(args, prog)
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise MatchError(str(exc), 2) from exc

    pgroup = None
    if args.pgroup is not None:
        pgroup = {os.getpgrp() if pg == 0 else pg for pg in args.pgroup}
    session = None
    if args.session is not None:
        session = {os.getsid(0) if sid == 0 else sid for sid in args.session}

    settings = Settings(
        regex=regex,
        exact=args.exact,
        full=args.full,
        ignore_case=args.ignore_case,
        inverse=args.inverse,
        newest=args.newest,
        oldest=args.oldest,
        older=args.older,
        parent=_id_set(args.parent),
        runstates=args.runstates,
        terminal=_terminals(args.terminal),
        signal=parse_signal_value(args.signal),
        require_handler=args.require_handler,
        uid=_id_set(args.uid),
        euid=_id_set(args.euid),
        gid=_id_set(args.group),
        pgroup=pgroup,
        session=session,
    )

    has_criteria = (
        settings.newest
        or settings.oldest
        or settings.runstates is not None
        or settings.older is not None
        or settings.parent is not None
        or settings.terminal is not None
        or settings.uid is not None
        or settings.euid is not None
        or settings.gid is not None
        or settings.pgroup is not None
        or settings.session is not None
        or settings.require_handler
        or pattern
    )
    if not has_criteria:
        raise MatchError(
            f"no matching criteria specified\nTry `{prog} --help' for more information.", 2
        )

    if not settings.full and len(pattern.encode("utf-8")) > _MAX_NAME_PATTERN_LEN:
        raise MatchError(
            "pattern that searches for process name longer than 15 characters will "
            "result in zero matches\n"
            f"Try `{prog} -f' option to match against the complete command line.",
            1,
        )
    return settings


def _any_matches(ids: Optional[set], value: object) -> bool:
    return ids is None or value in ids


def _matches(settings: Settings, process: ProcessInformation) -> bool:
    try:
        state = process.run_state()
    except ValueError:
        state_ok = False
    else:
        state_ok = settings.runstates is None or str(state) in settings.runstates

    name = process.name()
    if settings.ignore_case:
        name = name.lower()
    subject = process.cmdline if settings.full else name
    pattern_ok = settings.regex.search(subject) is not None

    tty_ok = _any_matches(settings.terminal, process.tty())
    older_ok = process.start_time() >= (settings.older or 0)
    parent_ok = _any_matches(settings.parent, process.ppid())
    pgroup_ok = _any_matches(settings.pgroup, process.pgid())
    session_ok = _any_matches(settings.session, process.sid())
    ids_ok = (
        _any_matches(settings.uid, process.uid())
        and _any_matches(settings.euid, process.euid())
        and _any_matches(settings.gid, process.gid())
    )

    handler_ok = True
    if settings.require_handler:
        # Bit 0 of SigCgt stands for signal 1; signal 0 tests signal 64.
        bit = 63 if settings.signal == 0 else settings.signal - 1
        caught = process.status().get("SigCgt")
        if caught is None:
            raise ValueError(f"status of process {process.pid} has no SigCgt")
        handler_ok = bool(int(caught, 16) & (1 << bit))

    return (
        state_ok and pattern_ok and tty_ok and older_ok and parent_ok
        and pgroup_ok and session_ok and ids_ok and handler_ok
    )


def collect_matched_pids(
    settings: Settings, processes: Optional[Iterable[ProcessInformation]] = None
) -> List[ProcessInformation]:
    """Processes that meet the criteria, excluding the current process."""
    if processes is None:
        processes = walk_threads() if settings.threads else walk_process()
    own_pid = os.getpid()
    selected = []
    for process in processes:
        if process.pid == own_pid:
            continue
        try:
            matched = _matches(settings, process)
        except ValueError:
            continue
        if matched != settings.inverse:
            selected.append(process)
    return selected


def select_oldest_or_newest(
    settings: Settings, processes: Iterable[ProcessInformation]
) -> List[ProcessInformation]:
    """Keep only the oldest or newest process when asked to."""
    processes = list(processes)
    if not (settings.oldest or settings.newest) or not processes:
        return processes
    start_times = [process.start_time() for process in processes]
    target = max(start_times) if settings.newest else min(start_times)
    candidates = [p for p, start in zip(processes, start_times) if start == target]
    pick = max if settings.newest else min
    return [pick(candidates, key=lambda process: process.pid)]


def find_matching_pids(
    settings: Settings, processes: Optional[Iterable[ProcessInformation]] = None
) -> List[ProcessInformation]:
    """Matching processes after the oldest/newest selection."""
    matched = collect_matched_pids(settings, processes)
    if not matched:
        return matched
    return select_oldest_or_newest(settings, matched)