"""flf - incremental semantic code search console."""

__version__ = "0.3.0"
