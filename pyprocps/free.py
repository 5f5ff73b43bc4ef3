"""Display the amount of free and used memory in the system."""

from __future__ import annotations

import argparse
import math
import re
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

PROG = "free"
DEFAULT_MEMINFO_PATH = "/proc/meminfo"

_U64_MAX = 2**64 - 1
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_MAX_SLEEP_CHUNK = 86400.0 * 365

KB = 1000
MB = 1000**2
GB = 1000**3
TB = 1000**4
PB = 1000**5
KIB = 1024
MIB = 1024**2
GIB = 1024**3
TIB = 1024**4
PIB = 1024**5


@dataclass
class MemInfo:
    """Memory statistics, all in kibibytes."""

    total: int = 0
    free: int = 0
    available: int = 0
    shared: int = 0
    buffers: int = 0
    cached: int = 0
    swap_total: int = 0
    swap_free: int = 0
    swap_used: int = 0
    reclaimable: int = 0
    low_total: int = 0
    low_free: int = 0
    high_total: int = 0
    high_free: int = 0
    commit_limit: int = 0
    committed: int = 0


class Unit(Enum):
    """The unit chosen for plain (non-human) output."""

    BYTES = "bytes"
    KILO = "kilo"
    MEGA = "mega"
    GIGA = "giga"
    TERA = "tera"
    PETA = "peta"
    KIBI = "kibi"
    MEBI = "mebi"
    GIBI = "gibi"
    TEBI = "tebi"
    PEBI = "pebi"


@dataclass
class OutputOptions:
    """How the report is laid out and how numbers are shown."""

    unit: Optional[Unit] = None
    human: bool = False
    si: bool = False
    lohi: bool = False
    total: bool = False
    committed: bool = False
    line: bool = False
    wide: bool = False


_MEMINFO_KEYS = {
    "MemTotal": "total",
    "MemFree": "free",
    "MemAvailable": "available",
    "Shmem": "shared",
    "Buffers": "buffers",
    "Cached": "cached",
    "SwapTotal": "swap_total",
    "SwapFree": "swap_free",
    "SReclaimable": "reclaimable",
    "LowTotal": "low_total",
    "LowFree": "low_free",
    "HighTotal": "high_total",
    "HighFree": "high_free",
    "CommitLimit": "commit_limit",
    "Committed_AS": "committed",
}


def _parse_meminfo_value(value: str) -> int:
    tokens = value.split()
    if not tokens or not _UNSIGNED_RE.fullmatch(tokens[0]):
        raise ValueError("Invalid memory info format")
    number = int(tokens[0])
    if number > _U64_MAX:
        raise ValueError("Invalid memory info format")
    return number


def parse_meminfo(text: str) -> MemInfo:
    """Parse the contents of a ``/proc/meminfo`` file.

    Raises ValueError when a value is not a number.
    """
    info = MemInfo()
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        parsed = _parse_meminfo_value(value)
        attribute = _MEMINFO_KEYS.get(key.strip())
        if attribute is not None:
            setattr(info, attribute, parsed)

    # Everything that is not high memory is low memory.
    if info.low_total == 0:
        info.low_total = info.total - info.high_total
    if info.low_free == 0:
        info.low_free = info.free - info.high_free
    info.swap_used = info.swap_total - info.swap_free
    return info


def read_meminfo(path: str = DEFAULT_MEMINFO_PATH) -> MemInfo:
    """Read and parse a meminfo file."""
    with open(path, encoding="utf-8") as handle:
        return parse_meminfo(handle.read())


def humanized(kib: int, si: bool) -> str:
    """Human-readable size for ``kib`` kibibytes, e.g. ``1.0Ki`` or ``0B``."""
    size = kib * 1024
    base = 1000 if si else 1024
    if size < base:
        return f"{size}B"

    prefixes = "kMGTPE" if si else "KMGTPE"
    exponent = 0
    scaled = float(size)
    while True:
        exponent += 1
        scaled /= base
        if scaled < base or exponent == len(prefixes):
            break
    number = f"{float(size) / float(base**exponent):.1f}"
    unit = prefixes[exponent - 1] + ("" if si else "i")
    return f"{number}{unit}"


def unit_converter(options: OutputOptions) -> Callable[[int], int]:
    """A function converting kibibytes to the unit the options ask for."""
    unit = options.unit
    si = options.si

    def divide_by(divisor: int) -> Callable[[int], int]:
        return lambda kib: (kib * 1024) // divisor

    if unit is Unit.BYTES:
        return lambda kib: kib * 1024
    if unit is Unit.KILO or (si and unit is Unit.KIBI):
        return divide_by(KB)
    if unit is Unit.MEGA or (si and unit is Unit.MEBI):
        return divide_by(MB)
    if unit is Unit.GIGA or (si and unit is Unit.GIBI):
        return divide_by(GB)
    if unit is Unit.TERA or (si and unit is Unit.TEBI):
        return divide_by(TB)
    if unit is Unit.PETA or (si and unit is Unit.PEBI):
        return divide_by(PB)
    if unit is Unit.KIBI:
        return divide_by(KIB)
    if unit is Unit.MEBI:
        return divide_by(MIB)
    if unit is Unit.GIBI:
        return divide_by(GIB)
    if unit is Unit.TEBI:
        return divide_by(TIB)
    if unit is Unit.PEBI:
        return divide_by(PIB)
    if si:
        return divide_by(KB)
    return lambda kib: kib


def format_tuf_line(
    name: str, total: int, used: int, free: int, to_str: Callable[[int], str]
) -> str:
    """A total/used/free row; ``free`` may be negative when overcommitted."""
    free_str = f"-{to_str(-free)}" if free < 0 else to_str(free)
    return f"{name:<8}{to_str(total):>12}{to_str(used):>12}{free_str:>12}\n"


def _row(cells: Sequence[str]) -> str:
    return f"{cells[0]:<8}" + "".join(f"{cell:>12}" for cell in cells[1:]) + "\n"


def _one_line(info: MemInfo, to_str: Callable[[int], str]) -> str:
    swap = to_str(info.swap_used)
    cache = to_str(info.buffers + info.cached + info.reclaimable)
    used = to_str(info.total - info.available)
    free = to_str(info.free)
    return (
        f"{'SwapUse':<8}{swap:>11} {'CachUse':<8}{cache:>11}  "
        f"{'MemUse':<8}{used:>10} {'MemFree':<8}{free:>11}\n"
    )


def _memory_table(info: MemInfo, to_str: Callable[[int], str], wide: bool) -> str:
    used = info.total - info.available
    if wide:
        header = [" ", "total", "used", "free", "shared", "buffers", "cache", "available"]
        values = [
            info.total, used, info.free, info.shared,
            info.buffers, info.cached + info.reclaimable, info.available,
        ]
    else:
        header = [" ", "total", "used", "free", "shared", "buff/cache", "available"]
        values = [
            info.total, used, info.free, info.shared,
            info.buffers + info.cached + info.reclaimable, info.available,
        ]
    return _row(header) + _row(["Mem:"] + [to_str(value) for value in values])


def format_report(mem_info: MemInfo, options: OutputOptions) -> str:
    """The text printed for one sample of memory statistics."""
    convert = unit_converter(options)

    def to_str(value: int) -> str:
        if options.human:
            return humanized(value, options.si)
        return str(convert(value))

    if options.line:
        return _one_line(mem_info, to_str)

    info = mem_info
    parts = [_memory_table(info, to_str, options.wide)]
    if options.lohi:
        parts.append(format_tuf_line(
            "Low:", info.low_total, info.low_total - info.low_free, info.low_free, to_str
        ))
        parts.append(format_tuf_line(
            "High:", info.high_total, info.high_total - info.high_free, info.high_free, to_str
        ))
    parts.append(format_tuf_line(
        "Swap:", info.swap_total, info.swap_used, info.swap_free, to_str
    ))
    if options.total:
        parts.append(format_tuf_line(
            "Total:",
            info.total + info.swap_total,
            info.total - info.available + info.swap_used,
            info.free + info.swap_free,
            to_str,
        ))
    if options.committed:
        parts.append(format_tuf_line(
            "Comm:",
            info.commit_limit,
            info.committed,
            info.commit_limit - info.committed,
            to_str,
        ))
    return "".join(parts)


def _u64(text: str) -> int:
    if not _UNSIGNED_RE.fullmatch(text) or int(text) > _U64_MAX:
        raise argparse.ArgumentTypeError(f"invalid value '{text}'")
    return int(text)


def _float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value '{text}'") from None


def build_parser() -> argparse.ArgumentParser:
    """The command-line parser for free."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Display amount of free and used memory in the system",
        add_help=False,
    )
    units = parser.add_mutually_exclusive_group()
    unit_flags = [
        (("-b", "--bytes"), Unit.BYTES, "show output in bytes"),
        (("--kilo",), Unit.KILO, "show output in kilobytes"),
        (("--mega",), Unit.MEGA, "show output in megabytes"),
        (("--giga",), Unit.GIGA, "show output in gigabytes"),
        (("--tera",), Unit.TERA, "show output in terabytes"),
        (("--peta",), Unit.PETA, "show output in petabytes"),
        (("-k", "--kibi"), Unit.KIBI, "show output in kibibytes"),
        (("-m", "--mebi"), Unit.MEBI, "show output in mebibytes"),
        (("-g", "--gibi"), Unit.GIBI, "show output in gibibytes"),
        (("--tebi",), Unit.TEBI, "show output in tebibytes"),
        (("--pebi",), Unit.PEBI, "show output in pebibytes"),
    ]
    for flags, unit, help_text in unit_flags:
        units.add_argument(*flags, dest="unit", action="store_const", const=unit,
                           help=help_text)
    parser.add_argument("-h", "--human", action="store_true",
                        help="show human-readable output")
    parser.add_argument("--si", action="store_true", help="use powers of 1000 not 1024")
    parser.add_argument("-l", "--lohi", action="store_true",
                        help="show detailed low and high memory statistics")
    parser.add_argument("-t", "--total", action="store_true",
                        help="show total for RAM + swap")
    parser.add_argument("-v", "--committed", action="store_true",
                        help="show committed memory and commit limit")
    parser.add_argument("-s", "--seconds", metavar="N", type=_float,
                        help="repeat printing every N seconds")
    parser.add_argument("-c", "--count", metavar="N", type=_u64,
                        help="repeat printing N times, then exit")
    parser.add_argument("-L", "--line", action="store_true",
                        help="show output on a single line")
    parser.add_argument("-w", "--wide", action="store_true", help="wide output")
    parser.add_argument("--help", action="help", help="display this help and exit")
    parser.add_argument("-V", "--version", action="version", version=f"{PROG} 0.0.1")
    return parser


def _options_from_args(args: argparse.Namespace) -> OutputOptions:
    return OutputOptions(
        unit=args.unit,
        human=args.human,
        si=args.si,
        lohi=args.lohi,
        total=args.total,
        committed=args.committed,
        line=args.line,
        wide=args.wide,
    )


def _sleep_seconds(seconds: float) -> float:
    if math.isnan(seconds) or seconds <= 0:
        return 0.0
    nanos = min(seconds * 1_000_000_000.0, float(_U64_MAX))
    return round(nanos) / 1_000_000_000.0


def _sleep(seconds: float) -> None:
    remaining = seconds
    while remaining > 0:
        chunk = min(remaining, _MAX_SLEEP_CHUNK)
        time.sleep(chunk)
        remaining -= chunk


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run free and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.count == 0:
        print(f"{PROG}: count argument must be greater than 0", file=sys.stderr)
        return 1
    if args.seconds == 0.0:
        print(f"{PROG}: seconds argument must be greater than 0", file=sys.stderr)
        return 1

    if args.count is not None:
        count: Optional[int] = args.count
    else:
        count = 1 if args.seconds is None else None
    seconds = _sleep_seconds(args.seconds if args.seconds is not None else 1.0)
    options = _options_from_args(args)

    printed = 0
    while True:
        try:
            info = read_meminfo()
        except (OSError, ValueError) as exc:
            print(f"{PROG}: failed to read memory info: {exc}", file=sys.stderr)
            return 1
        sys.stdout.write(format_report(info, options))
        printed += 1
        if count is not None and printed >= count:
            break
        if not options.line:
            sys.stdout.write("\n")
        sys.stdout.flush()
        _sleep(seconds)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())