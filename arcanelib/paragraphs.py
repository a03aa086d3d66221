# arcanelib/paragraphs.py
import re
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

# Párrafo compuesto solo por puntuación decorativa: ***, ---, ~~~, ###
_SEPARATOR_RE = re.compile(r"^[\s*\-_=~#]+$")

_ERROR_PREFIXES = ("❌", "[ERROR")


class ParagraphStatus(Enum):
    PENDING    = "pending"
    TRANSLATED = "translated"
    EDITED     = "edited"
    APPROVED   = "approved"


class EditedBy(Enum):
    AI   = "ai"
    USER = "user"


_USER_STATUSES = (ParagraphStatus.EDITED, ParagraphStatus.APPROVED)


@dataclass
class Paragraph:
    """
    Unidad editable del capítulo.
    id se asigna una sola vez al importar y nunca cambia: es la única clave
    segura para correlacionar párrafos entre rondas de traducción.
    index define el orden canónico de lectura.
    """
    id:              str
    index:           int
    original_text:   str
    translated_text: Optional[str]      = None
    status:          ParagraphStatus    = ParagraphStatus.PENDING
    edited_at:       Optional[str]      = None
    edited_by:       Optional[EditedBy] = None

    def to_dict(self) -> dict:
        return {
            "id":              self.id,
            "index":           self.index,
            "original_text":   self.original_text,
            "translated_text": self.translated_text,
            "status":          self.status.value,
            "edited_at":       self.edited_at,
            "edited_by":       self.edited_by.value if self.edited_by else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Paragraph":
        edited_by = data.get("edited_by")
        return cls(
            id              = data["id"],
            index           = int(data["index"]),
            original_text   = data.get("original_text", ""),
            translated_text = data.get("translated_text"),
            status          = ParagraphStatus(data.get("status", "pending")),
            edited_at       = data.get("edited_at"),
            edited_by       = EditedBy(edited_by) if edited_by else None,
        )

    def with_translation(self, text: str, edited_at: str) -> "Paragraph":
        """Copia con una traducción nueva aplicada por la IA."""
        return replace(
            self,
            translated_text = text,
            status          = ParagraphStatus.TRANSLATED,
            edited_at       = edited_at,
            edited_by       = EditedBy.AI,
        )


def parse_text_to_paragraphs(text: str) -> list[Paragraph]:
    """Divide el texto por líneas en blanco y crea un Paragraph pendiente por bloque."""
    parts = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]
    return [
        Paragraph(id=_generate_id(), index=i, original_text=content)
        for i, content in enumerate(parts)
    ]


def merge_paragraphs_to_text(
    paragraphs: list[Paragraph],
    field:      str = "translated_text",
) -> str:
    """Une el campo indicado de los párrafos, en orden de index, omitiendo vacíos."""
    if field not in ("translated_text", "original_text"):
        raise ValueError(f"Campo no soportado: {field}")
    ordered = sorted(paragraphs, key=lambda p: p.index)
    values  = [getattr(p, field) or "" for p in ordered]
    return "\n\n".join(v for v in values if v)


def is_separator_paragraph(paragraph: Paragraph) -> bool:
    return is_separator_text(paragraph.original_text)


def is_separator_text(text: str) -> bool:
    stripped = (text or "").strip()
    return bool(stripped) and bool(_SEPARATOR_RE.match(stripped))


def has_valid_translation(paragraph: Paragraph) -> bool:
    """Traducción no vacía que no sea un marcador de error (❌… / [ERROR…)."""
    return is_valid_translation_text(paragraph.translated_text)


def is_preserved_in_partial(paragraph: Paragraph) -> bool:
    """
    El modo parcial no toca este párrafo: tiene traducción válida, o el
    usuario lo editó o aprobó con cualquier texto no vacío.
    """
    if has_valid_translation(paragraph):
        return True
    return paragraph.status in _USER_STATUSES and bool((paragraph.translated_text or "").strip())


def is_valid_translation_text(text: Optional[str]) -> bool:
    stripped = (text or "").strip()
    if not stripped:
        return False
    return not stripped.startswith(_ERROR_PREFIXES)


def _generate_id() -> str:
    return f"p_{uuid.uuid4().hex[:12]}"
