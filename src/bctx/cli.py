#  -*- coding: utf-8 -*-
"""
bctx dump: print a filtered directory tree and the matching file contents.

Overview
--------
The dump is meant to be pasted into an LLM conversation. It writes:

1) a tree of every file that passes the extension filter, and
2) one ``===== /<path> =====`` block per file with its raw bytes.

Files come from ``git ls-files`` when the root is inside a work tree, from
``rg --files`` otherwise, and from a plain filesystem walk as a last resort.
Files matched by ``.gitignore``, ``.bctxignore`` or an ``--exclude`` glob
stay in the tree but their content is withheld.

Usage
-----
Run ``bctx --help`` for full options. Common examples:
    - TypeScript sources of the current project:
        bctx dump ts tsx

    - Markdown and YAML of another directory, skipping fixtures:
        bctx dump "md|yml" -C ../service -x "tests/fixtures/**"

    - Everything, written to a file, with debug logs:
        bctx dump -o context.txt --verbose
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, TextIO

from pydantic import ValidationError

from bctx import __version__
from bctx.exceptions import BctxError
from bctx.file_manipulation import (
    build_matched_files,
    collect_candidates,
    load_ignore_filter,
    select_strategies,
    verify_root,
)
from bctx.filters import classify_files, compile_exclude, parse_extensions
from bctx.logging import logger, setup_logging
from bctx.output_construction import write_contents, write_tree
from bctx.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

DUMP_COMMAND = "dump"
NO_MATCH_MESSAGE = "[bctx] No files matched the extension filters."


class ExcludeAction(argparse.Action):
    """Collect ``--exclude`` values, splitting each on commas.

    The first value replaces the built-in defaults (the destination starts as
    None), so ``-x ""`` disables them. Later values are appended and empty
    ones leave the list unchanged.
    """

    def __call__(
        self,
        parser: argparse.ArgumentParser,  # noqa: ARG002
        namespace: argparse.Namespace,
        values: Any,  # noqa: ANN401
        option_string: str | None = None,  # noqa: ARG002
    ) -> None:
        """Merge one ``--exclude`` value into the namespace."""
        pieces = [piece.strip() for piece in str(values or "").split(",") if piece.strip()]
        current = getattr(namespace, self.dest, None)
        if current is None:
            setattr(namespace, self.dest, pieces)
            return
        if not pieces:
            return
        setattr(namespace, self.dest, [*current, *pieces])


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``dump`` command.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    p = argparse.ArgumentParser(
        prog="bctx dump",
        description="Dump a filtered directory tree and matching file contents, honouring .gitignore rules.",
    )
    p.add_argument(
        "extensions",
        nargs="*",
        default=[],
        help="Extensions to include (space or | separated, leading dot optional).",
    )
    p.add_argument("-C", "--cwd", dest="root", type=str, default=None, help="Root directory to scan.")
    p.add_argument(
        "-x",
        "--exclude",
        action=ExcludeAction,
        default=None,
        help="Glob whose matches keep their tree entry but lose their content (repeatable, comma separated).",
    )
    p.add_argument("-o", "--output", type=str, default=None, help="Write the dump to a file instead of stdout.")
    p.add_argument("--no-git", action="store_true", help="Do not use git ls-files.")
    p.add_argument("--no-rg", dest="no_ripgrep", action="store_true", help="Do not use rg --files.")
    p.add_argument(
        "--timeout",
        dest="subprocess_timeout",
        type=float,
        default=None,
        help="Seconds before git/rg listing is abandoned.",
    )
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument(
        "-v",
        "--verbose",
        dest="log_level",
        action="store_const",
        const="DEBUG",
        default=None,
        help="Emit debug logs.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse CLI arguments into settings.

    Options left unset fall back to the `Settings` defaults.

    Args:
        argv (Sequence[str] | None): Optional CLI args, without the ``dump`` word.

    Returns:
        Settings: Parsed settings.
    """
    args = build_parser().parse_intermixed_args(argv)
    return Settings(**{key: value for key, value in vars(args).items() if value is not None})


def run_dump(settings: Settings, *, out: BinaryIO, err: TextIO) -> int:
    """Run the dump pipeline: enumerate, filter, classify, render.

    Args:
        settings (Settings): Run configuration.
        out (BinaryIO): Primary output stream.
        err (TextIO): Diagnostic stream.

    Returns:
        int: Process exit code.
    """
    root = verify_root(settings.root)
    extensions = parse_extensions(settings.extensions)
    patterns = compile_exclude(settings.exclude)
    ignore_filter = load_ignore_filter(root)

    candidates = collect_candidates(
        root,
        strategies=select_strategies(no_git=settings.no_git, no_ripgrep=settings.no_ripgrep),
        timeout=settings.subprocess_timeout,
    )
    records = build_matched_files(root, candidates)
    if settings.output is not None:
        target = Path(os.path.normpath(settings.output.absolute()))
        records = [rec for rec in records if rec.absolute != target]

    files = classify_files(
        records,
        extensions=extensions,
        patterns=patterns,
        ignore_filter=ignore_filter,
    )
    if not files:
        err.write(f"{NO_MATCH_MESSAGE}\n")
        return 0

    write_tree(out, files)
    written = write_contents(out, err, files)
    out.flush()
    logger.info("dump_written", root=str(root), files=len(files), content_blocks=written)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``bctx`` command.

    Args:
        argv (Sequence[str] | None): CLI args; ``sys.argv[1:]`` when None. A leading
            ``dump`` word is accepted and ignored.

    Returns:
        int: Process exit code.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == DUMP_COMMAND:
        args = args[1:]
    try:
        settings = parse_args(args)
        setup_logging(settings.log_file or None, settings.log_level)
        verify_root(settings.root)
        if settings.output is None:
            return run_dump(settings, out=sys.stdout.buffer, err=sys.stderr)
        with settings.output.open("wb") as out:
            return run_dump(settings, out=out, err=sys.stderr)
    except (BctxError, OSError, ValidationError, ValueError) as e:
        logger.debug("dump_failed", error=str(e))
        sys.stderr.write(f"[bctx] {e}\n")
        return 1


def entrypoint() -> None:
    """Console-script wrapper around `main`."""
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
