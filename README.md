# pyprocps

Small process and memory tools that read the Linux `/proc` filesystem:

- **pgrep**: look up processes by name and other attributes
- **pidof**: find the process IDs of a running program
- **free**: show the amount of free and used memory

## Installation

```
pip install .
```

## Commands

Each tool has its own command. The `procps` command can also start any of them:

```
procps pgrep -l bash
procps pidof -s sshd
procps free -h
```

Run `procps` with no arguments to list the available tools. Run
`procps --help pgrep` to see the options of one tool. A binary name that ends
in a tool's name after a non-alphanumeric prefix, such as `uu-pgrep`, starts
that tool directly.

You can also start the tools directly:

```
pgrep-py -f "python -m http.server"
pidof-py -S , nginx
free-py --si -h -t
```

### pgrep-py

`pgrep-py` prints the PIDs of processes that match a regular expression. By
default it matches against the process name. With `-f` it matches against the
full command line.

Filters:

| Option | Selects by |
| --- | --- |
| `-u` | effective user |
| `-U` | real user |
| `-G` | real group |
| `-P` | parent |
| `-g` | process group |
| `-s` | session |
| `-t` | terminal |
| `-r` | run state |
| `-O` | older than |
| `-H` | has a handler for the `--signal` signal |
| `-n` | newest only |
| `-o` | oldest only |

The `-u`, `-U` and `-G` options accept names or numeric IDs. The options that
take lists accept comma-separated values.

Other options:

- `-x` matches the whole name.
- `-i` ignores case.
- `-v` inverts the match.
- `-w` walks threads instead of processes.
- `-c` prints a count.
- `-l` lists PIDs with names. `-a` lists PIDs with command lines.
- `-d` sets the delimiter between entries.

Exit status:

- 1 when nothing matches.
- 2 when no criteria are given, when more than one pattern is given, or when the pattern is an invalid regular expression.
- 1 when a name pattern (without `-f`) is longer than 15 characters.

### pidof-py

`pidof-py` prints the PIDs of programs with the given names, newest first for
each name.

- `-S`/`-d` sets the separator.
- `-s` returns one PID per name.
- `-o` omits PIDs (comma-separated, repeatable).
- `-t` lists thread IDs instead.
- `-x` also matches shells running a script of that name.
- `-w` includes kernel workers, which have no command line.
- `-q` prints nothing.

It exits with status 1 when no name is given or nothing is found.

### free-py

`free-py` reports memory and swap usage from `/proc/meminfo`.

Choose the unit with one of these options:

- `-b`
- `-k`, `-m`, `-g`, `--tebi`, `--pebi`
- `--kilo`, `--mega`, `--giga`, `--tera`, `--peta`

Other display options:

- `-h` gives human-readable output.
- `--si` uses powers of 1000.
- `-l` adds low/high memory lines.
- `-t` adds a total line.
- `-v` adds a committed-memory line.
- `-w` shows buffers and cache separately.
- `-L` prints everything on one line.

Repeating:

- `-s N` repeats the report every N seconds, until interrupted when no count is given.
- `-c N` stops after N reports.

Help is `--help`, since `-h` selects human-readable output.

## Library use

The modules can be used from Python as well:

```python
from pyprocps.process import walk_process

for proc in walk_process("/proc"):
    print(proc.pid, proc.name(), proc.run_state())
```

`pyprocps.process` also provides the following:

- `walk_threads` to walk threads.
- `ProcessInformation.from_path` to read one process directory.
- `parse_teletype` and `parse_run_state` for terminal and state codes.
- `stat_split` for `stat` files.

```python
from pyprocps.free import OutputOptions, format_report, read_meminfo

info = read_meminfo("/proc/meminfo")
print(format_report(info, OutputOptions(human=True)))
```

`pyprocps.process_matcher` holds the process selection used by pgrep:

- `Settings`
- `get_match_settings`
- `find_matching_pids`

## What it does not do

- Only `pgrep`, `pidof` and `free` are included.
- There is no `pkill` or `pidwait`: `pgrep-py` never sends signals or waits for processes.
- There is no `ps` or `top` for listing or watching processes interactively.
- Everything is read from `/proc`, so the tools work only on Linux.

## Tests

```
pip install .[test]
pytest
```