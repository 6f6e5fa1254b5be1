"""bctx: dump a filtered directory tree and file contents for LLM context."""

__version__ = "0.3.0"
