"""Manuscript exporter for writing projects."""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config.constants import EXPORT_FORMATS
from ..config.settings import get_settings
from ..errors import ValidationError
from ..models.project import Project
from ..storage import filesystem as fs
from ..utils.logging import get_logger

HEADING_MARKER = re.compile(r'^#{1,6}\s+', re.MULTILINE)


class MarkdownExporter:
    """Export a loaded project to a single Markdown or plain-text file."""

    def __init__(self, project: Project, output_dir: Optional[Path] = None):
        """
        Initialize markdown exporter.

        Args:
            project: Loaded project (chapters in manifest order)
            output_dir: Directory for default output files (the exports
                directory under the Inkwell home if not provided)
        """
        self.project = project
        self.output_dir = Path(output_dir) if output_dir else get_settings().exports_dir
        self.logger = get_logger("export")

    def default_path(self, fmt: str) -> Path:
        """Timestamped output file in the exports directory, outside the project."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return self.output_dir / f"{self.project.path.name}-{stamp}.{fmt}"

    def export(self, output_path: Optional[Path] = None, fmt: str = 'md') -> Path:
        """
        Export project chapters to one file.

        Args:
            output_path: Optional custom output path
            fmt: 'md' or 'txt'

        Returns:
            Path to the written file

        Raises:
            ValidationError: If the format is not supported
        """
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Export format must be one of: {', '.join(EXPORT_FORMATS)}")

        if output_path is None:
            output_path = self.default_path(fmt)

        text = self.build_markdown()
        if fmt == 'txt':
            text = HEADING_MARKER.sub('', text)

        fs.write_text(Path(output_path), text)
        self.logger.info(
            f"Exported {self.project.name} ({len(self.project.chapters)} chapters) to {output_path}"
        )
        return Path(output_path)

    def build_markdown(self) -> str:
        """Build the complete manuscript."""
        manifest = self.project.manifest
        parts = [f"# {manifest.name}\n\n"]
        if manifest.author:
            parts.append(f"by {manifest.author}\n\n")

        for chapter in self.project.chapters:
            parts.append(f"## {chapter.title or chapter.id}\n\n")
            content = chapter.content.strip()
            if content:
                parts.append(content)
                parts.append("\n\n")

        return ''.join(parts).rstrip('\n') + '\n'
