from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, TextIO

from bctx.config import TREE_HEADER
from bctx.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bctx.config import MatchedFile


def relative_sort_key(relative: str) -> tuple[tuple[str, str], ...]:
    """Key used for every ordering of the dump (tree and content blocks alike).

    Paths are compared segment by segment so that directories differing only
    in case (``A/`` and ``a/``) never interleave their entries.

    Args:
        relative (str): root-relative POSIX path

    Returns:
        tuple[tuple[str, str], ...]: case-insensitive key per segment, with the
            raw segment as a tie-break
    """
    return tuple((segment.casefold(), segment) for segment in relative.split("/"))


def sort_by_relative(files: Sequence[MatchedFile]) -> list[MatchedFile]:
    """Return a copy of `files` ordered by relative path.

    Args:
        files (Sequence[MatchedFile]): records to order

    Returns:
        list[MatchedFile]: the ordered records
    """
    return sorted(files, key=lambda rec: relative_sort_key(rec.relative))


def build_tree_lines(files: Sequence[MatchedFile]) -> list[str]:
    """Build an indented tree of the files, without repeating shared directories.

    Single pass over the sorted records: each directory prefix is printed the
    first time it is met, then the file name one level below its parent.

    Args:
        files (Sequence[MatchedFile]): records to render

    Returns:
        list[str]: tree lines, two spaces of indentation per depth level
    """
    lines: list[str] = []
    seen: set[str] = set()
    for rec in sort_by_relative(files):
        segments = rec.relative.split("/")
        cursor = ""
        for depth, segment in enumerate(segments[:-1]):
            cursor = f"{cursor}/{segment}" if cursor else segment
            if cursor not in seen:
                seen.add(cursor)
                lines.append(f"  {'  ' * depth}{segment}/")
        lines.append(f"  {'  ' * (len(segments) - 1)}{segments[-1]}")
    return lines


def write_tree(out: BinaryIO, files: Sequence[MatchedFile]) -> None:
    """Write the tree block: header, tree lines and a blank line.

    Args:
        out (BinaryIO): primary output stream
        files (Sequence[MatchedFile]): records to render
    """
    text = "\n".join([TREE_HEADER, *build_tree_lines(files)]) + "\n\n"
    out.write(text.encode("utf-8"))


def format_heading_path(relative: str) -> str:
    """Prefix a relative path with ``/`` for headers and diagnostics.

    Args:
        relative (str): root-relative POSIX path

    Returns:
        str: the path with exactly one leading ``/``
    """
    return relative if relative.startswith("/") else f"/{relative}"


def write_file_content(out: BinaryIO, err: TextIO, rec: MatchedFile) -> bool:
    """Copy one file's raw bytes to `out`, ending with exactly one forced newline.

    Args:
        out (BinaryIO): primary output stream
        err (TextIO): diagnostic stream
        rec (MatchedFile): file to copy

    Returns:
        bool: False if the file could not be read
    """
    try:
        data = rec.absolute.read_bytes()
    except OSError as e:
        message = e.strerror or str(e)
        err.write(f"[Error reading {format_heading_path(rec.relative)}]: {message}\n")
        logger.debug("file_read_failed", path=rec.relative, error=str(e))
        return False

    out.write(data)
    if not data.endswith(b"\n"):
        out.write(b"\n")
    return True


def write_contents(out: BinaryIO, err: TextIO, files: Sequence[MatchedFile]) -> int:
    """Write a content block for every file whose content is not excluded.

    An unreadable file gets its header and separator but no body; the error
    goes to `err` and the dump continues.

    Args:
        out (BinaryIO): primary output stream
        err (TextIO): diagnostic stream
        files (Sequence[MatchedFile]): classified records

    Returns:
        int: number of files whose content was written
    """
    written = 0
    for rec in sort_by_relative(files):
        if rec.content_excluded:
            continue
        out.write(f"===== {format_heading_path(rec.relative)} =====\n".encode())
        if write_file_content(out, err, rec):
            written += 1
        out.write(b"\n")
    return written
