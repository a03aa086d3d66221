# arcanelib/sync.py
"""
Sincronización de la salida del pipeline con los párrafos del capítulo.

Tres estrategias de correlación, resueltas una sola vez por ejecución
según lo que el pipeline devolvió realmente:

- BY_ID: mapa paragraph_id → traducción (marcadores o JSON estructurado)
- BY_SEQUENTIAL_CHUNK: unidades de texto ya separadas, asignadas en orden
- BY_WHOLE_TEXT_SPLIT: solo hay texto; se divide por líneas en blanco

La sincronización es total y determinista: nunca cambia el número de
párrafos y nunca lanza por desajustes, que se reportan como avisos.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

from arcanelib.chunker.chunker import split_paragraphs
from arcanelib.markers import split_marked_text, strip_marker_id, strip_markers
from arcanelib.paragraphs import (
    Paragraph,
    is_preserved_in_partial,
    is_separator_paragraph,
    is_separator_text,
    is_valid_translation_text,
)
from arcanelib.providers.response_parser import find_paragraphs_payload

logger = logging.getLogger(__name__)


class SyncStrategy(Enum):
    BY_ID               = "by_id"
    BY_SEQUENTIAL_CHUNK = "by_sequential_chunk"
    BY_WHOLE_TEXT_SPLIT = "by_whole_text_split"


@dataclass
class TranslationOutput:
    """
    Lo que llega del pipeline (o del almacenamiento, en una recuperación).
    Solo uno de `paragraphs` / `chunks` suele estar presente.
    """
    text:       str                      = ""
    paragraphs: Optional[dict[str, str]] = None
    chunks:     Optional[list[str]]      = None

    @classmethod
    def from_pipeline_text(cls, text: str, structured: Optional[Sequence] = None) -> "TranslationOutput":
        """
        Orden de preferencia:
        1. marcadores --para:id-- en el texto final
        2. objeto {"paragraphs": [...]} embebido en el texto
        3. párrafos estructurados de la etapa de traducción
        4. unidades de texto separadas por líneas en blanco
        """
        text = text or ""

        pairs = split_marked_text(text)
        if pairs:
            return cls(text=text, paragraphs=_pairs_to_map(pairs))

        payload = find_paragraphs_payload(text)
        if payload:
            pairs = [(str(p.get("id", "")), str(p.get("translated") or "")) for p in payload]
            mapping = _pairs_to_map(pairs)
            if mapping:
                return cls(text=text, paragraphs=mapping)

        if structured:
            mapping = _pairs_to_map([(p.id, p.translated) for p in structured])
            if mapping:
                return cls(text=text, paragraphs=mapping)

        return cls(text=text, chunks=_text_units(text))

    @classmethod
    def from_chunks(cls, chunks: Sequence[str]) -> "TranslationOutput":
        """Chunks traducidos guardados; si traen marcadores se correlaciona por id."""
        text  = "\n\n".join(c.strip() for c in chunks if c and c.strip())
        pairs = split_marked_text(text)
        if pairs:
            return cls(text=text, paragraphs=_pairs_to_map(pairs))

        units = [unit for chunk in chunks for unit in _text_units(chunk)]
        return cls(text=text, chunks=units)

    @classmethod
    def from_text(cls, text: str) -> "TranslationOutput":
        """Solo texto, sin estructura: se dividirá por posición."""
        return cls(text=text or "")

    def is_empty(self) -> bool:
        if self.paragraphs is not None:
            return not any(v.strip() for v in self.paragraphs.values())
        if self.chunks is not None:
            return not any(c.strip() for c in self.chunks)
        return not self.text.strip()


@dataclass
class SyncReport:
    paragraphs: list[Paragraph]
    strategy:   SyncStrategy
    applied:    int       = 0
    preserved:  int       = 0
    warnings:   list[str] = field(default_factory=list)
    critical:   bool      = False


def resolve_strategy(output: TranslationOutput) -> SyncStrategy:
    if output.paragraphs:
        return SyncStrategy.BY_ID
    if output.chunks is not None:
        return SyncStrategy.BY_SEQUENTIAL_CHUNK
    return SyncStrategy.BY_WHOLE_TEXT_SPLIT


def sync_paragraphs(
    paragraphs: list[Paragraph],
    output:     TranslationOutput,
    partial:    bool          = False,
    now:        Optional[str] = None,
) -> SyncReport:
    """
    Aplica la traducción a los párrafos y devuelve una lista nueva,
    en el mismo orden y con la misma longitud que la recibida.

    partial=True nunca sobreescribe un párrafo con traducción válida.
    Los separadores (***, ---) nunca reciben traducción.
    """
    now      = now or datetime.now(timezone.utc).isoformat()
    strategy = resolve_strategy(output)
    result   = list(paragraphs)
    report   = SyncReport(paragraphs=result, strategy=strategy)

    # Recorrido en orden canónico de lectura; las posiciones apuntan a `result`
    walk = sorted(range(len(result)), key=lambda i: result[i].index)

    eligible: list[int] = []
    for pos in walk:
        paragraph = result[pos]
        if is_separator_paragraph(paragraph):
            continue
        if partial and is_preserved_in_partial(paragraph):
            report.preserved += 1
            continue
        eligible.append(pos)

    if strategy is SyncStrategy.BY_ID:
        _apply_by_id(result, eligible, output.paragraphs, now, report)
    else:
        units = output.chunks if strategy is SyncStrategy.BY_SEQUENTIAL_CHUNK else _text_units(output.text)
        _apply_in_order(result, eligible, units, now, report)

    report.critical = report.applied == 0 and bool(eligible) and not output.is_empty()

    for warning in report.warnings:
        logger.warning("Sync (%s): %s", strategy.value, warning)

    if report.critical:
        logger.critical(
            "Sync crítico (%s): ningún párrafo recibió traducción de %d elegibles",
            strategy.value, len(eligible),
        )
    else:
        logger.info(
            "Sync (%s): %d aplicados, %d preservados",
            strategy.value, report.applied, report.preserved,
        )

    return report


# ------------------------------------------------------------------
# Estrategias
# ------------------------------------------------------------------

def _apply_by_id(
    result:   list[Paragraph],
    eligible: list[int],
    mapping:  dict[str, str],
    now:      str,
    report:   SyncReport,
) -> None:
    known_ids = {p.id for p in result}
    missing   = 0
    invalid   = 0

    for pos in eligible:
        paragraph   = result[pos]
        translation = mapping.get(paragraph.id)

        if translation is None or not translation.strip():
            missing += 1
            continue
        if not is_valid_translation_text(translation):
            invalid += 1
            continue

        result[pos] = paragraph.with_translation(translation.strip(), now)
        report.applied += 1

    unknown = [pid for pid in mapping if pid not in known_ids]
    if unknown:
        report.warnings.append(f"{len(unknown)} ids sin párrafo correspondiente: {unknown[:5]}")
    if missing:
        report.warnings.append(f"{missing} párrafos elegibles sin traducción")
    if invalid:
        report.warnings.append(f"{invalid} traducciones con marca de error descartadas")


def _apply_in_order(
    result:   list[Paragraph],
    eligible: list[int],
    units:    list[str],
    now:      str,
    report:   SyncReport,
) -> None:
    """
    Cada párrafo elegible toma la siguiente unidad por índice relativo.
    Separadores y párrafos preservados no consumen unidades.
    """
    invalid = 0

    for slot, pos in enumerate(eligible):
        if slot >= len(units):
            break
        unit = units[slot]
        if not is_valid_translation_text(unit):
            invalid += 1
            continue
        result[pos] = result[pos].with_translation(unit.strip(), now)
        report.applied += 1

    if len(units) != len(eligible):
        report.warnings.append(
            f"{len(units)} unidades traducidas para {len(eligible)} párrafos elegibles"
        )
    if invalid:
        report.warnings.append(f"{invalid} unidades con marca de error descartadas")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _pairs_to_map(pairs: Sequence[tuple[str, str]]) -> dict[str, str]:
    """
    Normaliza ids ('--para:x--' → 'x') y descarta traducciones vacías.
    Si un id se repite, se conserva la primera traducción no vacía.
    """
    mapping: dict[str, str] = {}
    for raw_id, translated in pairs:
        paragraph_id = strip_marker_id(raw_id)
        if not paragraph_id or not (translated or "").strip():
            continue
        mapping.setdefault(paragraph_id, translated.strip())
    return mapping


def _text_units(text: str) -> list[str]:
    """Párrafos del texto traducido, sin separadores ni marcadores sueltos."""
    units = []
    for part in split_paragraphs(strip_markers(text or "")):
        if is_separator_text(part):
            continue
        units.append(part)
    return units
