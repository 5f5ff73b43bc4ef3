import argparse
import os
import signal

import pytest

from pyprocps.process import ProcessInformation, parse_teletype
from pyprocps.process_matcher import (
    MatchError,
    Settings,
    add_matcher_arguments,
    collect_matched_pids,
    find_matching_pids,
    get_match_settings,
    parse_gid_or_group_name,
    parse_signal_value,
    parse_uid_or_username,
    select_oldest_or_newest,
)


def make_parser():
    parser = argparse.ArgumentParser(prog="pgrep")
    add_matcher_arguments(parser, "pattern", True)
    return parser


def settings_for(*argv):
    return get_match_settings(make_parser().parse_args(list(argv)), "pgrep")


def make_process(tmp_path, pid, name, *, cmdline=None, state="S", ppid=1, pgid=None,
                 sid=None, start=100, uid=1000, gid=1000, sigcgt="0000000000000000"):
    pgid = pid if pgid is None else pgid
    sid = pid if sid is None else sid
    stat = (f"{pid} ({name}) {state} {ppid} {pgid} {sid} 0 -1 0 0 0 0 0 0 0 0 0 "
            f"20 0 1 0 {start} 0 0")
    status = (f"Name:\t{name}\nState:\t{state}\n"
              f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}\n"
              f"Gid:\t{gid}\t{gid}\t{gid}\t{gid}\n"
              f"SigCgt:\t{sigcgt}\n")
    return ProcessInformation(
        pid=pid,
        cmdline=name if cmdline is None else cmdline,
        proc_status=status,
        proc_stat=stat,
        path=tmp_path / str(pid),
    )


@pytest.fixture
def processes(tmp_path):
    return [
        make_process(tmp_path, 5000001, "bash", cmdline="/bin/bash -l", start=10),
        make_process(tmp_path, 5000002, "sshd", cmdline="/usr/sbin/sshd -D",
                     state="R", ppid=5000001, start=20, uid=0),
        make_process(tmp_path, 5000003, "python3", cmdline="python3 server.py",
                     state="Z", start=30),
    ]


def pids(result):
    return [process.pid for process in result]


def test_signal_by_name_and_number():
    assert parse_signal_value("SIGTERM") == int(signal.SIGTERM)
    assert parse_signal_value("term") == int(signal.SIGTERM)
    assert parse_signal_value("KILL") == parse_signal_value("9") == 9
    assert parse_signal_value("0") == 0


@pytest.mark.parametrize("name", ["FOO", "SIGNOPE", "64", "-1"])
def test_unknown_signal(name):
    with pytest.raises(MatchError) as info:
        parse_signal_value(name)
    assert info.value.exit_code == 1
    assert "Unknown signal" in str(info.value)


def test_numeric_ids_and_invalid_names():
    assert parse_uid_or_username("1000") == 1000
    assert parse_gid_or_group_name("42") == 42
    with pytest.raises(ValueError, match="invalid user name"):
        parse_uid_or_username("no-such-user-qqzz")
    with pytest.raises(ValueError, match="invalid group name"):
        parse_gid_or_group_name("no-such-group-qqzz")
    with pytest.raises(ValueError):
        parse_uid_or_username("4294967296")


def test_no_criteria():
    with pytest.raises(MatchError) as info:
        settings_for()
    assert info.value.exit_code == 2
    assert "no matching criteria specified" in str(info.value)


def test_only_one_pattern():
    with pytest.raises(MatchError) as info:
        settings_for("a", "b")
    assert info.value.exit_code == 2
    assert "only one pattern" in str(info.value)


def test_exact_and_ignore_case_shape_the_pattern():
    assert settings_for("-x", "sh").regex.pattern == "^sh$"
    assert settings_for("-i", "SSHD").regex.pattern == "sshd"


def test_long_name_pattern_rejected_unless_full():
    with pytest.raises(MatchError) as info:
        settings_for("a-very-long-process-name")
    assert info.value.exit_code == 1
    assert settings_for("-f", "a-very-long-process-name").full is True
    with pytest.raises(MatchError):
        settings_for("-x", "abcdefghijklmn")


def test_invalid_regex():
    with pytest.raises(MatchError) as info:
        settings_for("(")
    assert info.value.exit_code == 2


def test_id_lists_and_zero_pgroup():
    settings = settings_for("-P", "1,2", "-g", "0")
    assert settings.parent == {1, 2}
    assert settings.pgroup == {os.getpgrp()}


def test_terminal_list_drops_unknown_names():
    settings = settings_for("-t", "pts/3,bogus")
    assert settings.terminal == {parse_teletype("pts/3")}


def test_newest_and_oldest_are_exclusive():
    with pytest.raises(SystemExit):
        make_parser().parse_args(["-n", "-o"])


def test_bad_signal_option():
    with pytest.raises(MatchError) as info:
        settings_for("--signal", "NOPE", "x")
    assert info.value.exit_code == 1


def test_pattern_matches_name(processes):
    assert pids(collect_matched_pids(settings_for("sh"), processes)) == [5000001, 5000002]


def test_inverse(processes):
    assert pids(collect_matched_pids(settings_for("-v", "sh"), processes)) == [5000003]


def test_full_matches_cmdline(processes):
    assert pids(collect_matched_pids(settings_for("-f", "server"), processes)) == [5000003]


def test_ignore_case(processes):
    assert pids(collect_matched_pids(settings_for("-i", "PYTHON"), processes)) == [5000003]


def test_runstates(processes):
    assert pids(collect_matched_pids(settings_for("-r", "RZ"), processes)) == [5000002, 5000003]


def test_parent_and_uid_filters(processes):
    assert pids(collect_matched_pids(settings_for("-P", "5000001"), processes)) == [5000002]
    assert pids(collect_matched_pids(settings_for("-U", "0"), processes)) == [5000002]


def test_older_compares_start_time(processes):
    assert pids(collect_matched_pids(settings_for("-O", "20"), processes)) == [5000002, 5000003]


def test_require_handler(tmp_path):
    term_bit = format(1 << (int(signal.SIGTERM) - 1), "016x")
    handled = make_process(tmp_path, 5000010, "daemon", sigcgt=term_bit)
    unhandled = make_process(tmp_path, 5000011, "daemon")
    result = collect_matched_pids(settings_for("-H"), [handled, unhandled])
    assert pids(result) == [5000010]


def test_own_process_is_skipped(tmp_path):
    own = make_process(tmp_path, os.getpid(), "self")
    assert collect_matched_pids(settings_for("self"), [own]) == []


def test_unreadable_process_is_skipped(tmp_path):
    broken = ProcessInformation(pid=5000020, cmdline="", path=tmp_path / "x")
    assert collect_matched_pids(settings_for("x"), [broken]) == []


def test_newest_prefers_highest_pid_on_tie(tmp_path):
    items = [
        make_process(tmp_path, 5000031, "a", start=5),
        make_process(tmp_path, 5000032, "b", start=9),
        make_process(tmp_path, 5000033, "c", start=9),
    ]
    assert pids(select_oldest_or_newest(Settings(newest=True), items)) == [5000033]


def test_oldest_prefers_lowest_pid_on_tie(tmp_path):
    items = [
        make_process(tmp_path, 5000042, "a", start=5),
        make_process(tmp_path, 5000041, "b", start=5),
        make_process(tmp_path, 5000043, "c", start=9),
    ]
    assert pids(select_oldest_or_newest(Settings(oldest=True), items)) == [5000041]


def test_select_without_flags_keeps_everything(processes):
    assert select_oldest_or_newest(Settings(), processes) == processes


def test_find_matching_pids(processes):
    assert pids(find_matching_pids(settings_for("-n", "sh"), processes)) == [5000002]
    assert find_matching_pids(settings_for("nomatch"), processes) == []