"""Document export."""

from .pdf import ExportMetadata, clean_markdown, export_artifact, export_filename, render_artifact

__all__ = ["ExportMetadata", "clean_markdown", "export_artifact", "export_filename", "render_artifact"]
