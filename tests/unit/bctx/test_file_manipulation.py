from __future__ import annotations

import os
import shutil
import subprocess  # noqa: S404
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from bctx import file_manipulation
from bctx.exceptions import EnumerationError, RootNotFoundError
from bctx.file_manipulation import (
    IgnoreFilter,
    build_matched_files,
    collect_candidates,
    list_git_files,
    list_ripgrep_files,
    load_ignore_filter,
    normalize_relative,
    parse_null_separated,
    select_strategies,
    verify_root,
    walk_filesystem,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def write(root: Path, relative: str, contents: str = "x\n") -> Path:
    destination = root / relative
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(contents, encoding="utf-8")
    return destination


@pytest.mark.unit
def test_normalize_relative_strips_leading_dot_slash() -> None:
    assert normalize_relative("./src/app.py") == "src/app.py"
    assert normalize_relative("src/./app.py") == "src/./app.py"
    assert normalize_relative(Path("src") / "app.py") == "src/app.py"


@pytest.mark.unit
def test_parse_null_separated_tolerates_trailing_terminators() -> None:
    assert parse_null_separated(b"a.ts\0nested/b.ts\0") == ["a.ts", "nested/b.ts"]
    assert parse_null_separated(b"a.ts\0b.ts\n") == ["a.ts", "b.ts"]
    assert parse_null_separated(b"\0\0") == []


@pytest.mark.unit
def test_parse_null_separated_keeps_newlines_inside_names() -> None:
    assert parse_null_separated(b"odd\nname.txt\0plain.txt\0") == ["odd\nname.txt", "plain.txt"]


@pytest.mark.unit
def test_verify_root_rejects_missing_and_file_paths(tmp_path: Path) -> None:
    file_path = write(tmp_path, "file.txt")

    assert verify_root(tmp_path) == tmp_path.absolute()
    with pytest.raises(RootNotFoundError):
        verify_root(tmp_path / "missing")
    with pytest.raises(RootNotFoundError, match="Directory not found"):
        verify_root(file_path)


@pytest.mark.unit
def test_walk_filesystem_skips_git_directory(tmp_path: Path) -> None:
    write(tmp_path, "a.ts")
    write(tmp_path, "nested/deeper/b.ts")
    write(tmp_path, ".git/config")
    write(tmp_path, "sub/.git/HEAD")
    write(tmp_path, ".github/workflows/ci.yml")

    found = sorted(walk_filesystem(tmp_path))

    assert found == [".github/workflows/ci.yml", "a.ts", "nested/deeper/b.ts"]


@pytest.mark.unit
@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_walk_filesystem_records_symlinks_without_following(tmp_path: Path) -> None:
    write(tmp_path, "real/inner.txt")
    (tmp_path / "link").symlink_to(tmp_path / "real", target_is_directory=True)
    (tmp_path / "file-link").symlink_to(tmp_path / "real" / "inner.txt")

    found = sorted(walk_filesystem(tmp_path))

    assert found == ["file-link", "link", "real/inner.txt"]


@pytest.mark.unit
def test_collect_candidates_uses_first_non_empty_strategy(tmp_path: Path) -> None:
    calls: list[str] = []

    def failing(root: Path, *, timeout: float | None = None) -> list[str]:
        calls.append("failing")
        raise EnumerationError(command="missing-tool")

    def empty(root: Path, *, timeout: float | None = None) -> list[str]:
        calls.append("empty")
        return []

    def listing(root: Path, *, timeout: float | None = None) -> list[str]:
        calls.append("listing")
        return ["src/app.py"]

    def never(root: Path, *, timeout: float | None = None) -> list[str]:
        calls.append("never")
        return ["other.py"]

    found = collect_candidates(tmp_path, strategies=(failing, empty, listing, never))

    assert found == ["src/app.py"]
    assert calls == ["failing", "empty", "listing"]


@pytest.mark.unit
def test_collect_candidates_falls_back_to_walk(tmp_path: Path) -> None:
    write(tmp_path, "a.ts")
    write(tmp_path, "nested/b.ts")

    def failing(root: Path, *, timeout: float | None = None) -> list[str]:
        raise EnumerationError(command="git ls-files", returncode=128)

    found = collect_candidates(tmp_path, strategies=(failing,))

    assert sorted(found) == ["a.ts", "nested/b.ts"]


@pytest.mark.unit
def test_collect_candidates_walks_when_executables_are_missing(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    root = tmp_path / "project"
    write(root, "a.ts")
    write(root, "docs/readme.md")
    empty_bin = tmp_path / "bin"
    empty_bin.mkdir()
    monkeypatch.setenv("PATH", str(empty_bin))

    with pytest.raises(EnumerationError):
        list_git_files(root)
    with pytest.raises(EnumerationError):
        list_ripgrep_files(root)
    assert sorted(collect_candidates(root)) == ["a.ts", "docs/readme.md"]


@pytest.mark.unit
def test_list_git_files_raises_on_non_zero_exit(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(
        file_manipulation.subprocess,
        "run",
        return_value=subprocess.CompletedProcess(args=["git"], returncode=128, stdout=b"", stderr=b"fatal"),
    )

    with pytest.raises(EnumerationError) as exc_info:
        list_git_files(tmp_path)

    assert exc_info.value.returncode == 128
    assert exc_info.value.stderr == "fatal"


@pytest.mark.unit
def test_list_git_files_parses_null_separated_output(tmp_path: Path, mocker: MockerFixture) -> None:
    run = mocker.patch.object(
        file_manipulation.subprocess,
        "run",
        return_value=subprocess.CompletedProcess(args=["git"], returncode=0, stdout=b"a.ts\0b c.ts\0", stderr=b""),
    )

    assert list_git_files(tmp_path, timeout=5.0) == ["a.ts", "b c.ts"]
    args, kwargs = run.call_args
    assert args[0] == ["git", "-C", str(tmp_path), "ls-files", "-z", "-co", "--exclude-standard"]
    assert kwargs["timeout"] == 5.0  # noqa: PLR2004


@pytest.mark.unit
def test_list_ripgrep_files_reports_timeout(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(
        file_manipulation.subprocess,
        "run",
        side_effect=subprocess.TimeoutExpired(cmd="rg", timeout=1),
    )

    with pytest.raises(EnumerationError):
        list_ripgrep_files(tmp_path, timeout=1)


@pytest.mark.unit
@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_walk_matches_git_listing_without_ignored_files(tmp_path: Path) -> None:
    write(tmp_path, "a.ts")
    write(tmp_path, "src/b.py")
    write(tmp_path, "src/deep/c.md")
    write(tmp_path, ".hidden/d.txt")
    subprocess.run(["git", "init", "-q", str(tmp_path)], check=True)  # noqa: S607

    via_git = list_git_files(tmp_path)
    via_walk = walk_filesystem(tmp_path)

    assert sorted(via_git) == sorted(via_walk)


@pytest.mark.unit
def test_select_strategies_honours_switches() -> None:
    assert select_strategies() == (list_git_files, list_ripgrep_files)
    assert select_strategies(no_git=True) == (list_ripgrep_files,)
    assert select_strategies(no_git=True, no_ripgrep=True) == ()


@pytest.mark.unit
def test_build_matched_files_joins_root(tmp_path: Path) -> None:
    recs = build_matched_files(tmp_path, ["./src/app.py", "README.md"])

    assert [r.relative for r in recs] == ["src/app.py", "README.md"]
    assert recs[0].absolute == tmp_path / "src" / "app.py"
    assert not any(r.content_excluded for r in recs)


@pytest.mark.unit
def test_ignore_filter_negation_reincludes_file() -> None:
    rules = IgnoreFilter("*.log\n!keep.log\n")

    assert rules.ignores("debug.log")
    assert rules.ignores("nested/debug.log")
    assert not rules.ignores("keep.log")
    assert not rules.ignores("nested/keep.log")
    assert not rules.ignores("app.py")


@pytest.mark.unit
def test_ignore_filter_negation_cannot_escape_ignored_directory() -> None:
    rules = IgnoreFilter("build/\n!build/keep.txt\n")

    assert rules.ignores("build/keep.txt")
    assert rules.ignores("build/out/bundle.js")
    assert not rules.ignores("src/build.py")


@pytest.mark.unit
def test_ignore_filter_directory_and_anchored_patterns() -> None:
    rules = IgnoreFilter("docs/\n/top.txt\nfile[0-9].txt\n# comment\n")

    assert rules.ignores("docs/index.md")
    assert not rules.ignores("docs")
    assert rules.ignores("top.txt")
    assert not rules.ignores("sub/top.txt")
    assert rules.ignores("file7.txt")
    assert not rules.ignores("filex.txt")
    assert not rules.ignores("# comment")


@pytest.mark.unit
def test_load_ignore_filter_returns_none_without_rules(tmp_path: Path) -> None:
    assert load_ignore_filter(tmp_path) is None

    write(tmp_path, ".gitignore", "\n\n")

    assert load_ignore_filter(tmp_path) is None


@pytest.mark.unit
def test_load_ignore_filter_tool_file_overrides_gitignore(tmp_path: Path) -> None:
    write(tmp_path, ".gitignore", "*.md\n")
    write(tmp_path, ".bctxignore", "!README.md\nsecrets.txt")

    rules = load_ignore_filter(tmp_path)

    assert rules is not None
    assert rules.ignores("notes.md")
    assert not rules.ignores("README.md")
    assert rules.ignores("secrets.txt")
    assert not rules.ignores("app.ts")


@pytest.mark.unit
def test_load_ignore_filter_propagates_unexpected_read_errors(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").mkdir()

    with pytest.raises(OSError):  # noqa: PT011
        load_ignore_filter(tmp_path)
