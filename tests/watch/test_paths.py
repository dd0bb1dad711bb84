"""Tests for path classification and ignore rules."""

from __future__ import annotations

from pathlib import Path

from complywatch.watch.paths import (
    build_ignore_rule,
    is_config_path,
    is_source_path,
    is_test_path,
    iter_files,
    load_ignore_rules,
    should_ignore,
)
from tests._fixtures.tree_builder import TreeBuilder


def test_source_paths_are_detected_by_directory_segment() -> None:
    assert is_source_path("src/app/main.ts")
    assert is_source_path("services/billing/handler.py")
    assert not is_source_path("docs/guide.md")
    assert not is_source_path("src")


def test_config_paths_cover_names_and_suffixes() -> None:
    assert is_config_path("package.json")
    assert is_config_path("deploy/settings.yaml")
    assert is_config_path("Dockerfile")
    assert is_config_path(".env.local")
    assert is_config_path("docker-compose.override.yml")
    assert not is_config_path("src/main.py")


def test_test_paths_cover_common_conventions() -> None:
    assert is_test_path("tests/unit/helpers.py")
    assert is_test_path("src/__tests__/widget.js")
    assert is_test_path("pkg/test_models.py")
    assert is_test_path("pkg/models_test.go")
    assert is_test_path("src/main/java/UserServiceTest.java")
    assert is_test_path("src/widget.spec.ts")
    assert is_test_path("src/widget.test.js")
    assert not is_test_path("src/Test.java")
    assert not is_test_path("src/contest.py")


def test_directory_rule_ignores_files_beneath_it() -> None:
    rule = build_ignore_rule("generated/")
    assert rule is not None

    assert should_ignore("generated", True, [rule])
    assert should_ignore("generated/api/client.ts", False, [rule])
    assert not should_ignore("src/generated.ts", False, [rule])


def test_negated_rule_reincludes_a_path() -> None:
    rules = [build_ignore_rule("*.log"), build_ignore_rule("keep.log", negate=True)]

    assert should_ignore("debug.log", False, rules)  # type: ignore[arg-type]
    assert not should_ignore("keep.log", False, rules)  # type: ignore[arg-type]


def test_builtin_excluded_directories_are_always_skipped() -> None:
    assert should_ignore("node_modules/left-pad/index.js", False, [])
    assert should_ignore(".git", True, [])
    assert should_ignore(".complywatch/metrics-history.json", False, [])
    assert should_ignore(".DS_Store", False, [])


def test_load_ignore_rules_reads_gitignore_then_config(tree: TreeBuilder) -> None:
    tree.write({".gitignore": "# comment\n\n*.tmp\n/out/\n"})

    rules = load_ignore_rules(tree.path(), ["vendor/"])

    assert [rule.pattern for rule in rules] == ["*.tmp", "out", "vendor"]
    assert rules[1].anchored and rules[1].directory_only


def test_iter_files_walks_sorted_and_honours_ignores(tree: TreeBuilder) -> None:
    tree.write(
        {
            ".gitignore": "*.tmp\n",
            "b.py": "",
            "a.py": "",
            "scratch.tmp": "",
            "src/app.ts": "",
            "node_modules/pkg/index.js": "",
        }
    )
    rules = load_ignore_rules(tree.path())

    files = [path.relative_to(tree.path()).as_posix() for path in iter_files(tree.path(), rules)]

    assert files == [".gitignore", "a.py", "b.py", "src/app.ts"]


def test_iter_files_on_empty_directory(tmp_path: Path) -> None:
    assert list(iter_files(tmp_path, [])) == []
