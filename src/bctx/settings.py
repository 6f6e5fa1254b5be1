from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "BCTX_"

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


def env_default(name: str, default: str = "") -> str:
    """Look up a ``BCTX_*`` setting in the environment, then in the nearest ``.env`` file.

    Args:
        name (str): Setting name without the prefix (e.g. ``LOG_LEVEL``).
        default (str): Value used when neither source defines it.

    Returns:
        str: The configured value, or `default`.
    """
    key = f"{ENV_PREFIX}{name}"
    if key in os.environ:
        return os.environ[key]
    if ENV_FILE:
        value = dotenv_values(ENV_FILE).get(key)
        if value is not None:
            return value
    return default


def _default_timeout() -> float | None:
    raw = env_default("SUBPROCESS_TIMEOUT").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        msg = f"Invalid {ENV_PREFIX}SUBPROCESS_TIMEOUT: {raw!r}"
        raise ValueError(msg) from e


class Settings(BaseModel):
    """Configuration settings for a dump run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Directory to scan.")
    extensions: list[str] = Field(
        default_factory=list,
        description="Raw extension tokens ('|' separated, leading dot optional).",
    )
    exclude: list[str] | None = Field(
        default=None,
        description="Exclude globs; matching files keep their tree entry but lose their content. "
        "None selects the built-in defaults.",
    )
    output: Path | None = Field(default=None, description="Output file; stdout when unset.")
    no_git: bool = Field(default=False, description="Do not use git ls-files.")
    no_ripgrep: bool = Field(default=False, description="Do not use rg --files.")
    subprocess_timeout: float | None = Field(
        default_factory=_default_timeout,
        gt=0,
        description="Seconds before a listing command is abandoned.",
    )
    log_file: str = Field(
        default_factory=lambda: env_default("LOG_FILE"),
        description="Log file path.",
    )
    log_level: str = Field(
        default_factory=lambda: env_default("LOG_LEVEL", "WARNING"),
        description="Structured log level.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept level names case-insensitively.

        Returns:
            str: Upper-case level name.

        Raises:
            ValueError: If the level is not a standard logging level.
        """
        if isinstance(value, int):
            value = logging.getLevelName(value)
        text = str(value or "WARNING").strip().upper()
        if text not in _LOG_LEVELS:
            msg = f"Unknown log level: {value!r}"
            raise ValueError(msg)
        return text
