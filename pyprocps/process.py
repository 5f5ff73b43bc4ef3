"""Reading process information from a procfs-style directory tree."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterator, Mapping, Optional, Tuple, Union

DEFAULT_PROC_ROOT = "/proc"

_U64_RE = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1


def _parse_unsigned(text: str, limit: int = _U64_MAX) -> int:
    """Parse an unsigned decimal integer no larger than ``limit``."""
    if not _U64_RE.fullmatch(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value > limit:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _is_unsigned(text: str) -> bool:
    try:
        _parse_unsigned(text)
    except ValueError:
        return False
    return True


class TeletypeKind(Enum):
    """The family a terminal device belongs to."""

    TTY = "tty"
    TTYS = "ttyS"
    PTS = "pts"
    UNKNOWN = "?"


@dataclass(frozen=True)
class Teletype:
    """A controlling terminal, identified by its kind and number."""

    kind: TeletypeKind
    number: Optional[int] = None

    def __str__(self) -> str:
        if self.kind is TeletypeKind.TTY:
            return f"/dev/pts/{self.number}"
        if self.kind is TeletypeKind.TTYS:
            return f"/dev/tty{self.number}"
        if self.kind is TeletypeKind.PTS:
            return f"/dev/ttyS{self.number}"
        return "?"


def _teletype_from_path(path: PurePosixPath) -> Teletype:
    parts = path.parts

    if "pts" in parts:
        index = parts.index("pts")
        if index + 1 < len(parts):
            return Teletype(TeletypeKind.PTS, _parse_unsigned(parts[index + 1]))

    text = str(path) if parts else ""
    last = parts[-1] if parts else ""

    def numbered(prefix: str) -> int:
        if not last.startswith(prefix):
            raise ValueError(f"not a terminal path: {text!r}")
        return _parse_unsigned(last[len(prefix):])

    if "ttyS" in text:
        return Teletype(TeletypeKind.TTYS, numbered("ttyS"))
    if "tty" in text:
        return Teletype(TeletypeKind.TTY, numbered("tty"))
    raise ValueError(f"not a terminal path: {text!r}")


def parse_teletype(value: Union[str, os.PathLike]) -> Teletype:
    """Parse a terminal name or device path such as ``/dev/pts/3`` or ``?``.

    Raises ValueError when the value does not name a terminal.
    """
    if isinstance(value, str) and value == "?":
        return Teletype(TeletypeKind.UNKNOWN)
    return _teletype_from_path(PurePosixPath(os.fspath(value)))


class RunState(Enum):
    """Process state as shown in the third field of ``/proc/<pid>/stat``."""

    RUNNING = "R"
    SLEEPING = "S"
    UNINTERRUPTIBLE_WAIT = "D"
    ZOMBIE = "Z"
    STOPPED = "T"
    TRACE_STOPPED = "t"
    DEAD = "X"
    IDLE = "I"

    def __str__(self) -> str:
        return self.value


def parse_run_state(value: str) -> RunState:
    """Parse a one-character state code; raise ValueError otherwise."""
    if len(value) != 1:
        raise ValueError(f"invalid run state: {value!r}")
    try:
        return RunState(value)
    except ValueError:
        raise ValueError(f"invalid run state: {value!r}") from None


def stat_split(stat: str) -> list:
    """Split the contents of a ``stat`` file into its fields.

    The command name between the first ``(`` and the last ``)`` is kept as
    one field even when it holds spaces or parentheses.
    """
    left = stat.find("(")
    right = stat.rfind(")")
    if left != -1 and right != -1 and right > left:
        fields = [stat[: max(left - 1, 0)], stat[left + 1 : right]]
        fields.extend(stat[right + 2 :].split())
        return fields
    return stat.split()


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


@dataclass(eq=True)
class ProcessInformation:
    """A process (or thread) and the raw contents of its status files."""

    pid: int
    cmdline: str
    proc_status: str = ""
    proc_stat: str = ""
    path: Optional[Path] = field(default=None, compare=False)

    _cached_status: Optional[dict] = field(
        default=None, init=False, repr=False, compare=False
    )
    _cached_stat: Optional[Tuple[str, ...]] = field(
        default=None, init=False, repr=False, compare=False
    )
    _cached_start_time: Optional[int] = field(
        default=None, init=False, repr=False, compare=False
    )
    _cached_thread_ids: Optional[Tuple[int, ...]] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __hash__(self) -> int:
        return hash((self.pid, self.proc_status, self.proc_stat))

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "ProcessInformation":
        """Read a process directory such as ``/proc/1234``.

        Raises OSError when a file cannot be read and ValueError when the
        directory name is not a process id.
        """
        path = Path(path)
        if path.is_symlink():
            target = Path(os.readlink(path))
            path = target if target.is_absolute() else path.parent / target

        pid_text = path.name
        if not _is_unsigned(pid_text):
            raise ValueError(f"not a process directory: {str(path)!r}")
        pid = _parse_unsigned(pid_text)

        cmdline = _read_text(path / "cmdline").replace("\0", " ").rstrip()
        return cls(
            pid=pid,
            cmdline=cmdline,
            proc_status=_read_text(path / "status"),
            proc_stat=_read_text(path / "stat"),
            path=path,
        )

    def status(self) -> Mapping[str, str]:
        """Key/value pairs from the ``status`` file."""
        if self._cached_status is None:
            result = {}
            for line in self.proc_status.splitlines():
                key, sep, value = line.partition(":")
                if sep:
                    result[key] = value.lstrip()
            self._cached_status = result
        return self._cached_status

    def stat(self) -> Tuple[str, ...]:
        """Fields of the ``stat`` file."""
        if self._cached_stat is None:
            self._cached_stat = tuple(stat_split(self.proc_stat))
        return self._cached_stat

    def name(self) -> str:
        """The ``Name`` entry of the ``status`` file."""
        try:
            return self.status()["Name"]
        except KeyError:
            raise ValueError(f"process {self.pid} has no name") from None

    def _numeric_stat_field(self, index: int) -> int:
        fields = self.stat()
        if index >= len(fields):
            raise ValueError(f"stat of process {self.pid} has no field {index}")
        return _parse_unsigned(fields[index])

    def start_time(self) -> int:
        """Start time in clock ticks after boot."""
        if self._cached_start_time is None:
            self._cached_start_time = self._numeric_stat_field(21)
        return self._cached_start_time

    def ppid(self) -> int:
        return self._numeric_stat_field(3)

    def pgid(self) -> int:
        return self._numeric_stat_field(4)

    def sid(self) -> int:
        return self._numeric_stat_field(5)

    def _id_field(self, key: str, index: int) -> int:
        try:
            values = self.status()[key].split()
        except KeyError:
            raise ValueError(f"status of process {self.pid} has no {key}") from None
        if index >= len(values):
            raise ValueError(f"{key} of process {self.pid} is incomplete")
        return _parse_unsigned(values[index], _U32_MAX)

    def uid(self) -> int:
        return self._id_field("Uid", 0)

    def euid(self) -> int:
        return self._id_field("Uid", 1)

    def gid(self) -> int:
        return self._id_field("Gid", 0)

    def egid(self) -> int:
        return self._id_field("Gid", 1)

    def run_state(self) -> RunState:
        """The process state; ValueError if it cannot be parsed."""
        fields = self.stat()
        if len(fields) < 3:
            raise ValueError(f"stat of process {self.pid} has no state")
        return parse_run_state(fields[2])

    def _directory(self) -> Path:
        if self.path is not None:
            return self.path
        return Path(DEFAULT_PROC_ROOT) / str(self.pid)

    def tty(self) -> Teletype:
        """The first terminal found among the open file descriptors."""
        try:
            entries = list(os.scandir(self._directory() / "fd"))
        except OSError:
            return Teletype(TeletypeKind.UNKNOWN)

        for entry in entries:
            if not entry.is_symlink():
                continue
            try:
                target = os.readlink(entry.path)
            except OSError:
                continue
            try:
                return _teletype_from_path(PurePosixPath(target))
            except ValueError:
                continue
        return Teletype(TeletypeKind.UNKNOWN)

    def thread_ids(self) -> Tuple[int, ...]:
        """Ids of the threads in this process's thread group."""
        if self._cached_thread_ids is None:
            directory = self._directory()
            task_dir = directory.parent if directory.parent.name == "task" else directory / "task"
            try:
                names = [entry.name for entry in os.scandir(task_dir)]
            except OSError:
                names = []
            self._cached_thread_ids = tuple(
                sorted(_parse_unsigned(name) for name in names if _is_unsigned(name))
            )
        return self._cached_thread_ids


def _numeric_dirs(directory: Path) -> Iterator[os.DirEntry]:
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return
    for entry in entries:
        if entry.is_symlink() or not _is_unsigned(entry.name):
            continue
        if entry.is_dir(follow_symlinks=False):
            yield entry


def walk_process(root: Union[str, os.PathLike] = DEFAULT_PROC_ROOT) -> Iterator[ProcessInformation]:
    """Yield every readable process found under ``root``."""
    try:
        entries = list(os.scandir(root))
    except OSError:
        return
    for entry in entries:
        if entry.is_symlink() or not entry.is_dir():
            continue
        try:
            yield ProcessInformation.from_path(entry.path)
        except (OSError, ValueError):
            continue


def walk_threads(root: Union[str, os.PathLike] = DEFAULT_PROC_ROOT) -> Iterator[ProcessInformation]:
    """Yield every readable thread (``<root>/<pid>/task/<tid>``) under ``root``."""
    for process_dir in _numeric_dirs(Path(root)):
        task_dir = Path(process_dir.path) / "task"
        if task_dir.is_symlink() or not task_dir.is_dir():
            continue
        for thread_dir in _numeric_dirs(task_dir):
            try:
                yield ProcessInformation.from_path(thread_dir.path)
            except (OSError, ValueError):
                continue