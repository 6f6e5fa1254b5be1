from __future__ import annotations

import os
import subprocess  # noqa: S404
from pathlib import Path
from typing import TYPE_CHECKING

import pathspec

from bctx.config import IGNORE_FILENAMES, VCS_DIRECTORY, MatchedFile
from bctx.exceptions import EnumerationError, RootNotFoundError
from bctx.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    CandidateStrategy = Callable[..., list[str]]


def to_posix(path: str | os.PathLike[str]) -> str:
    """Convert platform path separators to forward slashes.

    Args:
        path (str | os.PathLike[str]): the path to convert

    Returns:
        str: the path with every platform separator replaced by ``/``
    """
    text = os.fspath(path)
    for sep in (os.sep, os.altsep):
        if sep and sep != "/":
            text = text.replace(sep, "/")
    return text


def normalize_relative(path: str | os.PathLike[str]) -> str:
    """Bring a root-relative path to canonical form.

    Args:
        path (str | os.PathLike[str]): the relative path as reported by a strategy

    Returns:
        str: the POSIX form of `path` without a leading ``./``
    """
    text = to_posix(path)
    return text.removeprefix("./")


def parse_null_separated(data: bytes) -> list[str]:
    """Split NUL-delimited command output into paths.

    Each piece is stripped and empty pieces are dropped, so a trailing NUL or
    newline never produces a phantom entry.

    Args:
        data (bytes): raw stdout of a ``-z``/``-0`` listing command

    Returns:
        list[str]: the non-empty entries, in output order
    """
    text = data.decode("utf-8", errors="replace")
    return [entry.strip() for entry in text.split("\0") if entry.strip()]


def verify_root(root: str | os.PathLike[str]) -> Path:
    """Resolve the dump root to an absolute directory.

    Args:
        root (str | os.PathLike[str]): directory given by the user

    Raises:
        RootNotFoundError: if the path does not exist or is not a directory.

    Returns:
        Path: the absolute, lexically normalised root
    """
    resolved = Path(os.path.normpath(Path(root).expanduser().absolute()))
    if not resolved.is_dir():
        raise RootNotFoundError(root=resolved)
    return resolved


def _run_listing(command: Sequence[str], *, cwd: Path | None, timeout: float | None) -> list[str]:
    """Run a NUL-delimited file listing command.

    Args:
        command (Sequence[str]): argv of the listing command
        cwd (Path | None): working directory for the child process
        timeout (float | None): seconds before the child is abandoned

    Raises:
        EnumerationError: if the command is missing, times out, fails or prints nothing.

    Returns:
        list[str]: the listed paths
    """
    shown = " ".join(command)
    try:
        out = subprocess.run(  # noqa: S603
            list(command),
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            check=False,
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise EnumerationError(command=shown, stderr=str(e)) from e
    if out.returncode != 0 or not out.stdout:
        raise EnumerationError(
            command=shown,
            returncode=out.returncode,
            stderr=out.stderr.decode("utf-8", errors="replace").strip(),
        )
    return parse_null_separated(out.stdout)


def list_git_files(root: Path, *, timeout: float | None = None) -> list[str]:
    """List tracked and untracked-but-not-ignored files with ``git ls-files``.

    Args:
        root (Path): directory to list; may be any directory inside a work tree
        timeout (float | None): seconds before git is abandoned

    Returns:
        list[str]: paths relative to `root`
    """
    return _run_listing(
        ["git", "-C", str(root), "ls-files", "-z", "-co", "--exclude-standard"],
        cwd=None,
        timeout=timeout,
    )


def list_ripgrep_files(root: Path, *, timeout: float | None = None) -> list[str]:
    """List files with ``rg --files``, hidden files included, ``.git`` excluded.

    Args:
        root (Path): directory to list
        timeout (float | None): seconds before rg is abandoned

    Returns:
        list[str]: paths relative to `root`
    """
    return _run_listing(
        ["rg", "--files", "-0", "--hidden", "-g", f"!{VCS_DIRECTORY}/"],
        cwd=root,
        timeout=timeout,
    )


def walk_filesystem(root: Path) -> list[str]:
    """Collect files by walking the filesystem under `root`.

    The walk uses an explicit stack, skips any entry named ``.git`` and records
    symlinks as files without following them. Directories that cannot be read
    are logged and skipped.

    Args:
        root (Path): the root directory to walk

    Returns:
        list[str]: POSIX paths relative to `root`
    """
    stack: list[str] = [str(root)]
    results: list[str] = []
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.debug("walk_skipped_directory", directory=current, error=str(e))
            continue
        for entry in entries:
            if entry.name == VCS_DIRECTORY:
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                    continue
                if entry.is_file(follow_symlinks=False) or entry.is_symlink():
                    results.append(to_posix(os.path.relpath(entry.path, root)))
            except OSError as e:
                logger.debug("walk_skipped_entry", entry=entry.path, error=str(e))
    return results


DEFAULT_STRATEGIES: tuple[CandidateStrategy, ...] = (list_git_files, list_ripgrep_files)


def select_strategies(*, no_git: bool = False, no_ripgrep: bool = False) -> tuple[CandidateStrategy, ...]:
    """Pick the external listing strategies allowed by the configuration.

    Args:
        no_git (bool): skip ``git ls-files``
        no_ripgrep (bool): skip ``rg --files``

    Returns:
        tuple[CandidateStrategy, ...]: strategies in priority order
    """
    disabled: set[CandidateStrategy] = set()
    if no_git:
        disabled.add(list_git_files)
    if no_ripgrep:
        disabled.add(list_ripgrep_files)
    return tuple(s for s in DEFAULT_STRATEGIES if s not in disabled)


def collect_candidates(
    root: Path,
    *,
    strategies: Sequence[CandidateStrategy] = DEFAULT_STRATEGIES,
    timeout: float | None = None,
) -> list[str]:
    """Enumerate candidate files with the first strategy that finds any.

    External strategies are tried in order; a failing or empty one falls
    through silently. The filesystem walk is the final fallback.

    Args:
        root (Path): verified dump root
        strategies (Sequence[CandidateStrategy]): external listing functions, in priority order
        timeout (float | None): per-command timeout forwarded to each strategy

    Returns:
        list[str]: POSIX paths relative to `root`
    """
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            found = strategy(root, timeout=timeout)
        except EnumerationError as e:
            logger.debug(
                "candidate_strategy_failed",
                strategy=name,
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            )
            continue
        if found:
            logger.debug("candidate_strategy_selected", strategy=name, count=len(found))
            return [to_posix(item) for item in found]
        logger.debug("candidate_strategy_empty", strategy=name)

    files = walk_filesystem(root)
    logger.debug("candidate_strategy_selected", strategy="walk_filesystem", count=len(files))
    return files


def build_matched_files(root: Path, candidates: Sequence[str]) -> list[MatchedFile]:
    """Turn candidate paths into matched-file records.

    Args:
        root (Path): verified dump root
        candidates (Sequence[str]): relative paths from `collect_candidates`

    Returns:
        list[MatchedFile]: one record per candidate, content not yet excluded
    """
    recs: list[MatchedFile] = []
    for candidate in candidates:
        relative = normalize_relative(candidate)
        recs.append(
            MatchedFile(
                absolute=Path(os.path.normpath(root / relative)),
                relative=relative,
            ),
        )
    return recs


class IgnoreFilter:
    """Git-style ignore rules evaluated against root-relative POSIX paths.

    Matching is delegated to ``pathspec``'s git-wildmatch implementation.
    Ancestor directories are checked first: once a directory is ignored,
    nothing below it can be re-included by a later negation, as in git.
    """

    def __init__(self, text: str) -> None:
        """Compile the merged ignore-file text, one rule per line."""
        self.text = text
        self._spec = pathspec.GitIgnoreSpec.from_lines(text.splitlines())
        self._dir_cache: dict[str, bool] = {}

    def _dir_ignored(self, directory: str) -> bool:
        cached = self._dir_cache.get(directory)
        if cached is None:
            cached = self._spec.match_file(directory + "/")
            self._dir_cache[directory] = cached
        return cached

    def ignores(self, relative: str) -> bool:
        """Tell whether `relative` is ignored.

        Args:
            relative (str): root-relative path (``/`` separated)

        Returns:
            bool: True if the path or one of its parent directories is ignored
        """
        rel = normalize_relative(relative).strip("/")
        if not rel:
            return False
        parts = rel.split("/")
        for depth in range(1, len(parts)):
            if self._dir_ignored("/".join(parts[:depth])):
                return True
        return self._spec.match_file(rel)


def read_ignore_file(root: Path, filename: str) -> str:
    """Read one ignore file from `root`.

    Args:
        root (Path): dump root
        filename (str): ignore file name (e.g. ``.gitignore``)

    Returns:
        str: stripped file contents, or "" when the file does not exist
    """
    try:
        return (root / filename).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return ""


def load_ignore_filter(root: Path, filenames: Sequence[str] = IGNORE_FILENAMES) -> IgnoreFilter | None:
    """Merge the ignore files found at `root` into one rule set.

    Args:
        root (Path): dump root
        filenames (Sequence[str]): ignore files to read, in precedence order

    Returns:
        IgnoreFilter | None: the compiled rules, or None when no rule text was found
    """
    contents = [read_ignore_file(root, name) for name in filenames]
    combined = "\n".join(text for text in contents if text)
    if not combined:
        return None
    logger.debug(
        "ignore_rules_loaded",
        sources=[name for name, text in zip(filenames, contents, strict=True) if text],
    )
    return IgnoreFilter(combined)
