# arcanelib/chunker/chunker.py
import logging
import re
from typing import Optional, Sequence

from arcanelib.chunker.models import Chunk, ChunkerConfig
from arcanelib.chunker.token_estimator import CharTokenEstimator, TokenEstimator

logger = logging.getLogger(__name__)

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

# Puntuación final + espacio + mayúscula (latina o cirílica) o comilla de apertura
_SENTENCE_SPLIT_RE = re.compile(r'(?<=[.!?])\s+(?=[A-ZА-ЯЁ"«])')


class ChunkMergeError(Exception):
    """Los chunks no se pueden unir: índices con huecos o contenido vacío."""
    pass


class Chunker:
    """
    Divide el texto de un capítulo en chunks acotados en tokens.

    Modo párrafos (por defecto): acumula párrafos completos hasta llenar el
    presupuesto. Un párrafo que por sí solo excede max_tokens se corta por
    oraciones, con solapamiento de contexto entre chunks consecutivos.

    Garantía: los índices de salida son siempre 0..n-1, sin huecos.
    """

    def __init__(
        self,
        config:    Optional[ChunkerConfig]  = None,
        estimator: Optional[TokenEstimator] = None,
    ):
        self._config    = config or ChunkerConfig()
        self._estimator = estimator or CharTokenEstimator()

    def chunk(self, text: str) -> list[Chunk]:
        if self._config.preserve_paragraphs:
            pieces = self._by_paragraphs(text)
        else:
            pieces = self._by_sentences(text)

        chunks = []
        for content, overlap in pieces:
            if not content.strip():
                continue
            chunks.append(self._make_chunk(content, overlap, len(chunks)))
        return chunks

    # ------------------------------------------------------------------
    # Estrategias internas: devuelven pares (contenido, solapamiento)
    # ------------------------------------------------------------------

    def _by_paragraphs(self, text: str) -> list[tuple[str, str]]:
        max_tokens = self._config.max_tokens
        pieces: list[tuple[str, str]] = []
        current = ""

        for paragraph in split_paragraphs(text):
            paragraph_tokens = self._estimator.estimate(paragraph)

            if paragraph_tokens > max_tokens:
                if current.strip():
                    pieces.append((current, ""))
                    current = ""
                pieces.extend(self._by_sentences(paragraph))
                continue

            current_tokens = self._estimator.estimate(current)
            if current.strip() and current_tokens + paragraph_tokens > max_tokens:
                pieces.append((current, ""))
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current.strip():
            pieces.append((current, ""))
        return pieces

    def _by_sentences(self, text: str) -> list[tuple[str, str]]:
        max_tokens = self._config.max_tokens
        overlap_n  = max(0, self._config.overlap_sentences)

        pieces: list[tuple[str, str]] = []
        overlap:  list[str] = []
        current:  list[str] = []
        current_tokens = 0

        for sentence in split_sentences(text):
            sentence_tokens = self._estimator.estimate(sentence)

            if current and current_tokens + sentence_tokens > max_tokens:
                pieces.append((" ".join(current), " ".join(overlap)))
                # El solapamiento viaja como contexto, no como contenido:
                # así merge_chunks no duplica oraciones
                overlap = current[-overlap_n:] if overlap_n else []
                current = []
                current_tokens = self._estimator.estimate(" ".join(overlap))

            current.append(sentence)
            current_tokens += sentence_tokens

        if current:
            pieces.append((" ".join(current), " ".join(overlap)))
        return pieces

    def _make_chunk(self, content: str, overlap: str, index: int) -> Chunk:
        return Chunk(
            id          = f"chunk_{index}",
            content     = content.strip(),
            index       = index,
            token_count = self._estimator.estimate(content),
            overlap     = overlap.strip(),
        )


# ------------------------------------------------------------------
# API funcional: lo que usan las etapas del pipeline
# ------------------------------------------------------------------

def chunk_text(text: str, config: Optional[ChunkerConfig] = None) -> list[Chunk]:
    return Chunker(config).chunk(text)


def merge_chunks(chunks: Sequence[Chunk]) -> str:
    """
    Inverso exacto de chunk_text: ordena por index, descarta contenido vacío
    y une con una línea en blanco.

    Lanza ChunkMergeError si los índices no forman la secuencia 0..n-1
    o si todos los chunks están vacíos.
    """
    if not chunks:
        raise ChunkMergeError("No hay chunks para unir")

    indices = sorted(c.index for c in chunks)
    if indices != list(range(len(chunks))):
        raise ChunkMergeError(f"Índices de chunk no contiguos: {indices}")

    ordered  = sorted(chunks, key=lambda c: c.index)
    non_empty = [c for c in ordered if c.content and c.content.strip()]

    if not non_empty:
        raise ChunkMergeError(f"Los {len(chunks)} chunks están vacíos")

    if len(non_empty) != len(ordered):
        logger.warning("Descartados %d chunks vacíos al unir", len(ordered) - len(non_empty))

    merged = "\n\n".join(c.content.strip() for c in non_empty)
    logger.debug("Unidos %d chunks en %d caracteres", len(non_empty), len(merged))
    return merged


def split_into_sections(text: str, max_section_tokens: int = 8000) -> list[str]:
    """
    Agrupa párrafos en secciones grandes para capítulos muy largos.
    Un párrafo nunca se parte entre secciones.
    """
    estimator = CharTokenEstimator()
    sections: list[str] = []
    current = ""

    for paragraph in split_paragraphs(text):
        combined = f"{current}\n\n{paragraph}" if current else paragraph
        if current and estimator.estimate(combined) > max_section_tokens:
            sections.append(current.strip())
            current = paragraph
        else:
            current = combined

    if current.strip():
        sections.append(current.strip())
    return sections


def split_paragraphs(text: str) -> list[str]:
    """Párrafos separados por línea en blanco, sin espacios sobrantes ni vacíos."""
    return [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
