"""Export functionality for writing projects."""

from .md_exporter import MarkdownExporter

__all__ = ['MarkdownExporter']
