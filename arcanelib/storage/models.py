# storage/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from arcanelib.paragraphs import Paragraph


class ChapterStatus(Enum):
    PENDING     = "pending"
    TRANSLATING = "translating"
    COMPLETED   = "completed"
    ERROR       = "error"


class GlossaryEntryType(Enum):
    CHARACTER = "character"
    LOCATION  = "location"
    TERM      = "term"


@dataclass
class ProjectSettings:
    enable_analysis: bool                      = True
    enable_editing:  bool                      = True
    temperature:     float                     = 0.7
    chunk_size:      Optional[int]             = None
    # Nombre de proveedor (o lista) por etapa: analysis / translation / editing
    stage_providers: dict[str, list[str]]      = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "enable_analysis": self.enable_analysis,
            "enable_editing":  self.enable_editing,
            "temperature":     self.temperature,
            "chunk_size":      self.chunk_size,
            "stage_providers": self.stage_providers,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProjectSettings":
        data = data or {}
        stage_providers = {
            stage: [value] if isinstance(value, str) else list(value)
            for stage, value in (data.get("stage_providers") or {}).items()
        }
        return cls(
            enable_analysis = data.get("enable_analysis", True),
            enable_editing  = data.get("enable_editing", True),
            temperature     = data.get("temperature", 0.7),
            chunk_size      = data.get("chunk_size"),
            stage_providers = stage_providers,
        )


@dataclass
class StoredProject:
    id:              int
    name:            str
    source_language: str
    target_language: str
    settings:        ProjectSettings
    created_at:      str


@dataclass
class StoredChapter:
    id:                int
    project_id:        int
    number:            int
    title:             str
    original_text:     str
    status:            ChapterStatus
    paragraphs:        list[Paragraph]          = field(default_factory=list)
    translated_text:   Optional[str]            = None
    translated_chunks: Optional[list[str]]      = None
    translation_meta:  Optional[dict[str, Any]] = None


@dataclass
class GlossaryEntry:
    id:          int
    project_id:  int
    type:        str      # character | location | term
    original:    str
    translated:  str
    gender:      Optional[str] = None
    description: str           = ""
