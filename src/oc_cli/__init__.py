"""Command-line client for opencode servers."""

__version__ = "0.1.0"
