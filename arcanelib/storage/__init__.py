# storage/__init__.py
from arcanelib.storage.models import (
    ChapterStatus,
    GlossaryEntry,
    GlossaryEntryType,
    ProjectSettings,
    StoredChapter,
    StoredProject,
)
from arcanelib.storage.repository import Repository

__all__ = [
    "Repository",
    "ChapterStatus", "GlossaryEntryType",
    "ProjectSettings", "StoredProject", "StoredChapter", "GlossaryEntry",
]
