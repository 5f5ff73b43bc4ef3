"""Process and memory inspection tools (pgrep, pidof, free) built on the /proc filesystem."""

__version__ = "0.0.1"