"""CLI parser and command behaviour tests."""

from __future__ import annotations

import pytest

from complywatch.cli import _build_parser, main
from complywatch.config import CONFIG_FILENAME
from tests._fixtures.tree_builder import TreeBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "check"])
    assert args.verbose is True
    assert args.command == "check"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["watch", "--verbose"])
    assert args.verbose is True
    assert args.command == "watch"


def test_cli_parses_serve_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["watch", "repo", "--serve", "--host", "0.0.0.0", "--port", "9001"])
    assert args.path == "repo"
    assert args.serve is True
    assert args.host == "0.0.0.0"
    assert args.port == 9001


def test_cli_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args([])


def test_check_prints_summary_for_clean_tree(tree: TreeBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    tree.write({"src/util.py": "def add(a, b):\n    return a + b\n"})

    main(["check", str(tree.path())])

    out = capsys.readouterr().out
    assert "Files validated:     1" in out
    assert "Effectiveness score:" in out


def test_check_exits_non_zero_on_critical_violations(
    tree: TreeBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    tree.write({"src/settings.py": 'API_KEY = "abcd-1234"\n'})

    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(tree.path())])

    assert excinfo.value.code == 1
    assert "1 critical violation(s) found" in capsys.readouterr().err


def test_invalid_config_exits_with_message(tree: TreeBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    tree.write({CONFIG_FILENAME: "scheduler:\n  max_batch_size: -1\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(tree.path())])

    assert excinfo.value.code == 1
    assert "scheduler.max_batch_size" in capsys.readouterr().err


def test_missing_directory_exits(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(tmp_path / "nope")])

    assert excinfo.value.code == 1
    assert "is not a directory" in capsys.readouterr().err
