"""Template archive reading and writing."""

from .archive import ArchiveEntry, TemplateArchive, create_archive

__all__ = ["ArchiveEntry", "TemplateArchive", "create_archive"]
