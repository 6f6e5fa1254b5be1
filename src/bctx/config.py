from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

_ = Path()

GITIGNORE_FILENAME = ".gitignore"
BCTX_IGNORE_FILENAME = ".bctxignore"

# Read in this order; later rules (negations included) override earlier ones.
IGNORE_FILENAMES: tuple[str, ...] = (GITIGNORE_FILENAME, BCTX_IGNORE_FILENAME)

VCS_DIRECTORY = ".git"

TREE_HEADER = "### Tree (filtered):"

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/__pycache__/**",
    "*.lock",
    "package-lock.json",
    "pnpm-lock.yaml",
    "*.min.js",
    "*.map",
)


class MatchedFile(BaseModel):
    """A candidate file that survived enumeration.

    Attributes:
        absolute: Root-joined, lexically normalised path (symlinks are not resolved).
        relative: Root-relative path with forward slashes and no leading ``./``.
        content_excluded: Whether the file is listed in the tree but its body is withheld.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    absolute: Path = Field(..., description="Absolute file path")
    relative: str = Field(..., description="File path relative to the dump root")
    content_excluded: bool = Field(
        default=False,
        description="Set by classification when ignore rules or exclude globs match",
    )


class CompiledPattern(BaseModel):
    """One exclude glob, compiled for the three path forms it is tested against.

    The same segment-aware expression serves the absolute and the relative test.
    Built-in defaults are compiled with ``match_absolute=False`` so that a root
    living under e.g. ``build/`` does not withhold every file.
    ``basename_regex`` only exists for patterns without a ``/`` so that
    ``src/x`` never matches an unrelated ``x`` elsewhere in the tree.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    raw: str = Field(..., description="Pattern as given, after trimming")
    regex: re.Pattern[str] = Field(..., description="Compiled glob expression")
    basename_regex: re.Pattern[str] | None = Field(
        default=None,
        description="Expression for bare file names (slash-free patterns only)",
    )
    match_absolute: bool = Field(
        default=True,
        description="Whether the absolute path is tested too (user patterns only)",
    )

    def test_absolute(self, value: str) -> bool:
        """Match the absolute POSIX path, unless the pattern is root-relative only."""
        return self.match_absolute and self.regex.match(value) is not None

    def test_relative(self, value: str) -> bool:
        """Match the root-relative POSIX path."""
        return self.regex.match(value) is not None

    def test_basename(self, value: str) -> bool:
        """Match a bare file name; always False for patterns containing a slash."""
        if self.basename_regex is None:
            return False
        return self.basename_regex.match(value) is not None
