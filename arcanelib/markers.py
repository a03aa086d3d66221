# arcanelib/markers.py
"""
Marcadores de párrafo embebidos en el texto que viaja al traductor.

Formato: --para:{paragraph_id}--{texto}

Permiten recuperar la identidad exacta de cada párrafo aunque los límites
de chunk no coincidan 1:1 con los párrafos.
"""
import re
from typing import Optional

from arcanelib.paragraphs import Paragraph

MARKER_PREFIX = "--para:"
MARKER_SUFFIX = "--"

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_MARKER_RE          = re.compile(r"^\s*--para:(.+?)--")


def format_marker(paragraph_id: str) -> str:
    return f"{MARKER_PREFIX}{paragraph_id}{MARKER_SUFFIX}"


def add_paragraph_markers(text: str, paragraphs: list[Paragraph]) -> str:
    """
    Antepone a cada párrafo del texto el marcador de su Paragraph.

    Emparejamiento por igualdad exacta del texto:
    1. el párrafo apuntado por el puntero actual (camino rápido)
    2. búsqueda en toda la lista; el puntero salta a i + 1
    Lo que no empareja recibe auto_{n}, con n = partes ya marcadas.
    """
    parts = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]

    pointer = 0
    marked: list[str] = []

    for part in parts:
        matched: Optional[Paragraph] = None

        if pointer < len(paragraphs):
            if paragraphs[pointer].original_text.strip() == part:
                matched  = paragraphs[pointer]
                pointer += 1
            else:
                for i, candidate in enumerate(paragraphs):
                    if candidate.original_text.strip() == part:
                        matched = candidate
                        pointer = i + 1
                        break

        paragraph_id = matched.id if matched else f"auto_{len(marked)}"
        marked.append(f"{format_marker(paragraph_id)}{part}")

    return "\n\n".join(marked)


def strip_marker_id(raw_id: str) -> str:
    """'--para:abc--' → 'abc'. Un id ya limpio se devuelve tal cual."""
    value = (raw_id or "").strip()
    if value.startswith(MARKER_PREFIX) and value.endswith(MARKER_SUFFIX) \
            and len(value) > len(MARKER_PREFIX) + len(MARKER_SUFFIX):
        return value[len(MARKER_PREFIX):-len(MARKER_SUFFIX)]
    return value


def strip_markers(text: str) -> str:
    """Elimina los marcadores al inicio de cada párrafo."""
    parts = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]
    return "\n\n".join(_MARKER_RE.sub("", p, count=1).strip() for p in parts)


def has_markers(text: str) -> bool:
    return any(
        _MARKER_RE.match(p)
        for p in _PARAGRAPH_SPLIT_RE.split(text or "")
    )


def split_marked_text(text: str) -> Optional[list[tuple[str, str]]]:
    """
    Recupera los pares (paragraph_id, texto) de un texto marcado.

    Las partes sin marcador se agregan al párrafo marcado anterior con un
    espacio: vienen de un párrafo largo partido por frases, o el modelo lo
    dividió en dos. La traducción de un párrafo nunca contiene líneas en blanco.
    Devuelve None si el texto no empieza con un marcador.
    """
    parts = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]
    if not parts or not _MARKER_RE.match(parts[0]):
        return None

    pairs: list[tuple[str, str]] = []
    for part in parts:
        match = _MARKER_RE.match(part)
        if match:
            pairs.append((match.group(1).strip(), part[match.end():].strip()))
        else:
            last_id, last_text = pairs[-1]
            joined = f"{last_text} {part}" if last_text else part
            pairs[-1] = (last_id, joined)

    return pairs
