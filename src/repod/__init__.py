"""repod: flatten a directory tree into one text report for an LLM."""

__version__ = "0.1.0"
