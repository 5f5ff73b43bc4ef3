from pyprocps.cli import main, resolve_utility, usage


def test_resolve_exact_names():
    assert resolve_utility("pgrep") == "pgrep"
    assert resolve_utility("free") == "free"
    assert resolve_utility("pidof") == "pidof"


def test_resolve_prefixed_names():
    assert resolve_utility("uu-pgrep") == "pgrep"
    assert resolve_utility("uu_free") == "free"


def test_resolve_rejects_alphanumeric_prefix():
    assert resolve_utility("xpgrep") is None
    assert resolve_utility("procps") is None


def test_usage_lists_utilities():
    text = usage("procps")
    assert text.startswith("procps 0.0.1 (multi-call binary)\n")
    assert "Usage: procps [function [arguments...]]" in text
    assert "    free, pgrep, pidof" in text


def test_no_arguments_prints_usage(capsys):
    assert main(["procps"]) == 0
    assert "Currently defined functions:" in capsys.readouterr().out


def test_unknown_function(capsys):
    assert main(["procps", "nosuchutil"]) == 1
    assert "nosuchutil: function/utility not found" in capsys.readouterr().out


def test_help_without_utility(capsys):
    assert main(["procps", "--help"]) == 0
    assert "multi-call binary" in capsys.readouterr().out


def test_help_for_utility(capsys):
    assert main(["procps", "--help", "pidof"]) == 0
    assert "pidof" in capsys.readouterr().out


def test_help_for_unknown_utility(capsys):
    assert main(["procps", "--help", "nosuchutil"]) == 1
    assert "function/utility not found" in capsys.readouterr().out


def test_dispatch_by_argument():
    assert main(["procps", "pidof"]) == 1


def test_dispatch_by_binary_name():
    assert main(["/usr/local/bin/uu-pidof"]) == 1
    assert main(["pidof"]) == 1


def test_dispatch_passes_arguments(capsys):
    assert main(["procps", "free", "--count", "0"]) == 1
    assert "count argument must be greater than 0" in capsys.readouterr().err


def test_argument_error_becomes_exit_code():
    assert main(["procps", "pidof", "-o", "abc", "x"]) == 2