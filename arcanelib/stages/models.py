# stages/models.py
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from arcanelib.context.glossary import GlossaryUpdate


class StageType(Enum):
    ANALYZE   = "analyze"
    TRANSLATE = "translate"
    EDIT      = "edit"


@dataclass
class StageResult:
    """
    Resultado de una etapa. Las etapas nunca lanzan:
    cualquier error termina aquí con success=False.
    """
    stage:       StageType
    success:     bool
    data:        Optional[Any] = None
    tokens_used: int           = 0
    duration_ms: int           = 0
    error:       Optional[str] = None

    @classmethod
    def skipped(cls, stage: StageType) -> "StageResult":
        """Etapa omitida por opciones: cuenta como éxito sin coste."""
        return cls(stage=stage, success=True)


# ------------------------------------------------------------------
# Análisis
# ------------------------------------------------------------------

@dataclass
class FoundCharacter:
    name:                  str
    is_new:                bool
    suggested_translation: Optional[str] = None
    context:               str           = ""


@dataclass
class FoundLocation:
    name:                  str
    is_new:                bool
    suggested_translation: Optional[str] = None


@dataclass
class FoundTerm:
    term:                  str
    is_new:                bool
    suggested_translation: Optional[str] = None
    category:              str           = "other"


@dataclass
class AnalysisResult:
    chapter_number:   int
    found_characters: list[FoundCharacter] = field(default_factory=list)
    found_locations:  list[FoundLocation]  = field(default_factory=list)
    found_terms:      list[FoundTerm]      = field(default_factory=list)
    chapter_summary:  str                  = ""
    key_events:       list[str]            = field(default_factory=list)
    mood:             str                  = ""
    style_notes:      Optional[str]        = None
    glossary_update:  GlossaryUpdate       = field(default_factory=GlossaryUpdate)


# ------------------------------------------------------------------
# Traducción
# ------------------------------------------------------------------

@dataclass
class StructuredParagraph:
    """Par (id, traducción) tal como lo devolvió el proveedor en JSON."""
    id:         str
    translated: str


@dataclass
class ChunkTranslation:
    chunk_id:   str
    index:      int
    original:   str
    translated: str
    paragraphs: Optional[list[StructuredParagraph]] = None

    @property
    def failed(self) -> bool:
        return self.translated.startswith("[ERROR")


@dataclass
class TranslationDraft:
    original_text:   str
    translated_text: str
    chunk_results:   list[ChunkTranslation]              = field(default_factory=list)
    paragraphs:      Optional[list[StructuredParagraph]] = None


# ------------------------------------------------------------------
# Edición
# ------------------------------------------------------------------

@dataclass
class EditChange:
    before: str
    after:  str
    reason: str


@dataclass
class EditedTranslation:
    final_text:    str
    changes:       list[EditChange] = field(default_factory=list)
    quality_score: Optional[int]    = None


def elapsed_ms(started: float) -> int:
    """Milisegundos desde `started` (valor de time.monotonic())."""
    return int((time.monotonic() - started) * 1000)
