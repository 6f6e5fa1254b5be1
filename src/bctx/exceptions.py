from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BctxError(Exception):
    """Base exception for errors in the bctx package."""


@dataclass(frozen=True)
class RootNotFoundError(BctxError):
    """Raised when the dump root does not exist or is not a directory."""

    root: Path

    def __str__(self) -> str:
        """Render the message shown on the diagnostic stream."""
        return f"Directory not found: {self.root}"


@dataclass(frozen=True)
class EnumerationError(BctxError):
    """Raised when an external file listing command cannot be used."""

    command: str
    returncode: int | None = None
    stderr: str = ""
