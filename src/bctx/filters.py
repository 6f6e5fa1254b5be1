from __future__ import annotations

import glob
import posixpath
import re
from typing import TYPE_CHECKING

from bctx.config import DEFAULT_EXCLUDE_PATTERNS, CompiledPattern, MatchedFile
from bctx.file_manipulation import to_posix
from bctx.logging import logger

if TYPE_CHECKING:
    import os
    from collections.abc import Iterable, Sequence

    from bctx.file_manipulation import IgnoreFilter


def translate_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob into a regular expression over ``/``-separated paths.

    ``*`` and ``?`` stay within one segment, a ``**`` segment spans any number
    of directories and leading dots are matched like any other character.

    Args:
        pattern (str): glob in POSIX form

    Returns:
        re.Pattern[str]: anchored expression for `pattern`
    """
    return re.compile(glob.translate(pattern, recursive=True, include_hidden=True, seps="/"))


def compile_patterns(patterns: Iterable[str], *, match_absolute: bool = True) -> list[CompiledPattern]:
    """Compile raw exclude globs.

    Blank entries are dropped. A basename matcher is only built for patterns
    that contain no ``/``, which lets ``*.log`` hit files at any depth.

    Args:
        patterns (Iterable[str]): raw patterns from the CLI or the defaults
        match_absolute (bool): also test the absolute path of each file

    Returns:
        list[CompiledPattern]: compiled patterns, in input order
    """
    compiled: list[CompiledPattern] = []
    for raw in patterns:
        pattern = (raw or "").strip()
        if not pattern:
            continue
        normalized = to_posix(pattern)
        regex = translate_glob(normalized)
        compiled.append(
            CompiledPattern(
                raw=pattern,
                regex=regex,
                basename_regex=None if "/" in normalized else regex,
                match_absolute=match_absolute,
            ),
        )
    return compiled


def compile_exclude(exclude: Sequence[str] | None) -> list[CompiledPattern]:
    """Compile the exclude globs of a run.

    None selects the built-in defaults, which are only tested against
    root-relative paths and base names. User patterns are tested against the
    absolute path as well.

    Args:
        exclude (Sequence[str] | None): user patterns, or None for the defaults

    Returns:
        list[CompiledPattern]: compiled patterns
    """
    if exclude is None:
        return compile_patterns(DEFAULT_EXCLUDE_PATTERNS, match_absolute=False)
    return compile_patterns(exclude)


def is_excluded(
    absolute: str | os.PathLike[str],
    relative: str,
    patterns: Sequence[CompiledPattern],
) -> bool:
    """Check a file against the compiled exclude patterns.

    Args:
        absolute (str | os.PathLike[str]): absolute path of the file
        relative (str): root-relative POSIX path of the file
        patterns (Sequence[CompiledPattern]): output of `compile_patterns`

    Returns:
        bool: True if any pattern matches the absolute path, the relative path
            or, for slash-free patterns, the base name
    """
    if not patterns:
        return False
    absolute_posix = to_posix(absolute)
    relative_posix = to_posix(relative)
    basename = posixpath.basename(relative_posix)
    return any(
        p.test_absolute(absolute_posix) or p.test_relative(relative_posix) or p.test_basename(basename)
        for p in patterns
    )


def parse_extensions(raw_extensions: Iterable[str] | None) -> list[str]:
    """Parse requested extensions.

    Each token may hold several ``|``-separated extensions; a single leading
    dot is optional.

    Args:
        raw_extensions (Iterable[str] | None): tokens as typed by the user

    Returns:
        list[str]: unique extensions without dots, in first-seen order
    """
    unique: dict[str, None] = {}
    for raw in raw_extensions or []:
        for piece in raw.split("|"):
            ext = piece.strip().removeprefix(".")
            if ext:
                unique.setdefault(ext, None)
    return list(unique)


def matches_extension(relative: str, extensions: Sequence[str]) -> bool:
    """Check whether a path carries one of the requested extensions.

    Matching is case-sensitive. Dot-files such as ``.gitignore`` have no
    extension and only pass when no extension was requested.

    Args:
        relative (str): root-relative POSIX path
        extensions (Sequence[str]): output of `parse_extensions`

    Returns:
        bool: True if `extensions` is empty or contains the path's extension
    """
    if not extensions:
        return True
    ext = posixpath.splitext(relative)[1][1:]
    if not ext:
        return False
    return ext in extensions


def classify_files(
    files: Iterable[MatchedFile],
    *,
    extensions: Sequence[str],
    patterns: Sequence[CompiledPattern],
    ignore_filter: IgnoreFilter | None,
) -> list[MatchedFile]:
    """Apply the extension gate and flag files whose content must be withheld.

    Files with a non-matching extension are dropped. Files hit by the ignore
    rules or an exclude pattern are kept, with ``content_excluded`` set.

    Args:
        files (Iterable[MatchedFile]): records from `build_matched_files`
        extensions (Sequence[str]): output of `parse_extensions`
        patterns (Sequence[CompiledPattern]): output of `compile_patterns`
        ignore_filter (IgnoreFilter | None): merged ignore rules, or None for no rules

    Returns:
        list[MatchedFile]: surviving records, in input order
    """
    out: list[MatchedFile] = []
    withheld = 0
    for rec in files:
        if not matches_extension(rec.relative, extensions):
            continue
        ignored = ignore_filter is not None and ignore_filter.ignores(rec.relative)
        if ignored or is_excluded(rec.absolute, rec.relative, patterns):
            rec = rec.model_copy(update={"content_excluded": True})  # noqa: PLW2901
            withheld += 1
        out.append(rec)
    logger.debug("files_classified", kept=len(out), content_excluded=withheld)
    return out
