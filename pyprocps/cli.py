"""Multi-call entry point dispatching to the individual utilities."""

from __future__ import annotations

import shlex
import shutil
import sys
import textwrap
from pathlib import PurePath
from typing import Callable, Dict, Optional, Sequence

from . import free, pgrep, pidof

VERSION = "0.0.1"
MULTICALL_NAME = "procps"

UTILITIES: Dict[str, Callable[[Optional[Sequence[str]]], int]] = {
    "free": free.main,
    "pgrep": pgrep.main,
    "pidof": pidof.main,
}


def usage(name: str) -> str:
    """The overview text listing every available utility."""
    width = max(min(shutil.get_terminal_size(fallback=(80, 24)).columns, 100) - 4 * 2, 1)
    listing = textwrap.indent(textwrap.fill(", ".join(sorted(UTILITIES)), width), "    ")
    return (
        f"{name} {VERSION} (multi-call binary)\n\n"
        f"Usage: {name} [function [arguments...]]\n\n"
        "Currently defined functions:\n\n"
        f"{listing}\n"
    )


def resolve_utility(binary_name: str) -> Optional[str]:
    """The utility a binary name stands for, allowing prefixes like ``uu-``.

    A prefix must end in a character that is not alphanumeric.
    """
    if binary_name in UTILITIES:
        return binary_name
    for util in sorted(UTILITIES):
        if binary_name.endswith(util):
            prefix = binary_name[: len(binary_name) - len(util)]
            if not prefix or not prefix[-1].isalnum():
                return util
    return None


def _run(util: str, args: Sequence[str]) -> int:
    try:
        code = UTILITIES[util](list(args))
    except SystemExit as exc:
        code = exc.code
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    print(code, file=sys.stderr)
    return 1


def _not_found(util: str) -> int:
    print(f"{shlex.quote(util)}: function/utility not found")
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Dispatch on the binary name or the first argument.

    ``argv`` includes the program name, as ``sys.argv`` does.
    """
    argv = list(sys.argv if argv is None else argv)
    binary = argv[0] if argv and argv[0] else MULTICALL_NAME
    rest = argv[1:]

    binary_name = PurePath(binary).stem
    if not binary_name:
        print(usage("<unknown binary name>"))
        return 0

    util = resolve_utility(binary_name)
    if util is not None:
        return _run(util, rest)

    if not rest:
        print(usage(binary_name))
        return 0

    util, rest = rest[0], rest[1:]
    if util in UTILITIES:
        return _run(util, rest)

    if util in ("--help", "-h"):
        if rest:
            target, rest = rest[0], rest[1:]
            if target not in UTILITIES:
                return _not_found(target)
            code = _run(target, ["--help", *rest])
            sys.stdout.flush()
            return code
        print(usage(binary_name))
        return 0

    return _not_found(util)


if __name__ == "__main__":
    sys.exit(main())