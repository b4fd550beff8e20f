"""Inkwell - a local writing workspace with chapter storage, git and AI assistance."""

__version__ = "0.1.0"
