import pytest

from pyprocps.pidof import build_parser, collect_matched_pids, main, match_process_name
from pyprocps.process import ProcessInformation


def make_process(pid, cmdline, name, path=None):
    return ProcessInformation(
        pid=pid, cmdline=cmdline, proc_status=f"Name:\t{name}\n", path=path
    )


def test_matches_basename_of_command():
    process = make_process(10, "/usr/bin/bash -l", "bash")
    assert match_process_name(process, "bash", False, False) is True
    assert match_process_name(process, "sh", False, False) is False


def test_worker_needs_flag():
    worker = make_process(3, "", "kworker")
    assert match_process_name(worker, "kworker", False, False) is False
    assert match_process_name(worker, "kworker", True, False) is True
    assert match_process_name(worker, "other", True, False) is False


def test_script_matching():
    process = make_process(20, "/bin/sh ./script.sh", "script.sh")
    assert match_process_name(process, "script.sh", False, False) is False
    assert match_process_name(process, "script.sh", False, True) is True
    assert match_process_name(process, "sh", False, True) is True


def test_script_matching_requires_name_prefix():
    process = make_process(21, "/bin/sh ./script.sh", "other")
    assert match_process_name(process, "script.sh", False, True) is False


def test_collect_sorts_descending_per_program():
    processes = [
        make_process(5, "/bin/bash", "bash"),
        make_process(9, "/bin/bash", "bash"),
        make_process(7, "/usr/bin/vim x", "vim"),
        make_process(2, "/bin/bash", "bash"),
    ]
    result = collect_matched_pids(processes, ["bash", "vim"])
    assert result == [9, 5, 2, 7]


def test_collect_single_shot_and_omit():
    processes = [
        make_process(5, "/bin/bash", "bash"),
        make_process(9, "/bin/bash", "bash"),
    ]
    assert collect_matched_pids(processes, ["bash"], single_shot=True) == [9]
    assert collect_matched_pids(processes, ["bash"], omit_pids=[9]) == [5]
    assert collect_matched_pids(processes, ["bash"], omit_pids=[5, 9]) == []


def test_collect_threads(tmp_path):
    proc_dir = tmp_path / "40"
    for tid in ("40", "41", "42"):
        (proc_dir / "task" / tid).mkdir(parents=True)
    process = make_process(40, "/bin/server", "server", path=proc_dir)
    result = collect_matched_pids([process], ["server"], threads=True)
    assert result == [42, 41, 40]


def test_collect_unknown_program_is_empty():
    processes = [make_process(5, "/bin/bash", "bash")]
    assert collect_matched_pids(processes, ["zsh"]) == []


def test_parser_options():
    args = build_parser().parse_args(["-d", ",", "-o", "1,2", "-o", "3", "-s", "bash"])
    assert args.separator == ","
    assert args.omit_pids == [[1, 2], [3]]
    assert args.single_shot is True
    assert args.program_names == ["bash"]


def test_parser_default_separator():
    args = build_parser().parse_args(["bash"])
    assert args.separator == " "
    assert args.quiet is False


def test_parser_rejects_bad_pid():
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["-o", "abc", "bash"])
    assert info.value.code == 2


def test_main_without_names_fails(capsys):
    assert main([]) == 1
    assert capsys.readouterr().out == ""


def test_main_unknown_program_fails(capsys):
    assert main(["-q", "no-such-program-name-anywhere"]) == 1
    assert capsys.readouterr().out == ""