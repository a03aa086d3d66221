# stages/analyze.py
import logging
import time
from typing import Optional

from arcanelib import prompts
from arcanelib.context.glossary import (
    CharacterEntry,
    Glossary,
    GlossaryManager,
    GlossaryUpdate,
    LocationEntry,
    TermEntry,
)
from arcanelib.providers.base import JSONCapableProvider, supports_json
from arcanelib.providers.models import CompletionOptions, Message
from arcanelib.stages.models import (
    AnalysisResult,
    FoundCharacter,
    FoundLocation,
    FoundTerm,
    StageResult,
    StageType,
    elapsed_ms,
)

logger = logging.getLogger(__name__)

_ANALYSIS_OPTIONS = CompletionOptions(temperature=0.3, max_tokens=4096)


class AnalyzeStage:
    """
    Etapa 1: extrae personajes, lugares y términos del capítulo,
    además del resumen, los eventos clave, la atmósfera y notas de estilo.

    No modifica el glosario: devuelve un GlossaryUpdate con lo nuevo.
    La decisión de aplicarlo la toma el pipeline.
    """

    def __init__(
        self,
        provider:    JSONCapableProvider,
        source_lang: str = "English",
        target_lang: str = "Russian",
    ):
        if not supports_json(provider):
            raise TypeError(
                f"AnalyzeStage necesita un proveedor con salida JSON, "
                f"recibió {getattr(provider, 'name', provider)!r}"
            )
        self._provider    = provider
        self._source_lang = source_lang
        self._target_lang = target_lang

    def execute(
        self,
        source_text:       str,
        chapter_number:    int,
        existing_glossary: Optional[Glossary] = None,
    ) -> StageResult:
        """Nunca lanza: cualquier error se devuelve como StageResult fallido."""
        started = time.monotonic()

        try:
            glossary_text = ""
            if existing_glossary is not None:
                glossary_text = GlossaryManager(existing_glossary).to_prompt_text()

            messages = [
                Message(role="system", content=prompts.build_analyzer_system()),
                Message(role="user", content=prompts.build_analyzer_prompt(
                    source_text       = source_text,
                    source_lang       = self._source_lang,
                    target_lang       = self._target_lang,
                    existing_glossary = glossary_text or None,
                )),
            ]

            response = self._provider.complete_json(messages, _ANALYSIS_OPTIONS)
            result   = parse_analysis(response.data, chapter_number, existing_glossary)

            logger.info(
                "Análisis del capítulo %d: %d personajes, %d lugares, %d términos",
                chapter_number,
                len(result.found_characters),
                len(result.found_locations),
                len(result.found_terms),
            )

            return StageResult(
                stage       = StageType.ANALYZE,
                success     = True,
                data        = result,
                tokens_used = response.tokens_used.total,
                duration_ms = elapsed_ms(started),
            )

        except Exception as e:
            logger.warning("Análisis del capítulo %d falló: %s", chapter_number, e)
            return StageResult(
                stage       = StageType.ANALYZE,
                success     = False,
                error       = str(e),
                tokens_used = 0,
                duration_ms = elapsed_ms(started),
            )


def parse_analysis(
    raw:               dict,
    chapter_number:    int,
    existing_glossary: Optional[Glossary] = None,
) -> AnalysisResult:
    """
    Convierte la respuesta JSON del analizador en un AnalysisResult.
    Una entidad es nueva si su nombre no está en el glosario
    (comparación sin distinguir mayúsculas).
    """
    glossary = existing_glossary or Glossary()
    known_characters = {c.original_name.lower() for c in glossary.characters}
    known_locations  = {l.original_name.lower() for l in glossary.locations}
    known_terms      = {t.original_term.lower() for t in glossary.terms}

    raw_characters = [c for c in raw.get("characters") or [] if _has_text(c, "name")]
    raw_locations  = [l for l in raw.get("locations") or [] if _has_text(l, "name")]
    raw_terms      = [t for t in raw.get("terms") or [] if _has_text(t, "term")]

    update = GlossaryUpdate()

    found_characters = []
    for c in raw_characters:
        is_new = c["name"].lower() not in known_characters
        found_characters.append(FoundCharacter(
            name                  = c["name"],
            is_new                = is_new,
            suggested_translation = c.get("suggestedTranslation"),
            context               = c.get("context") or "",
        ))
        if is_new:
            update.new_characters.append(CharacterEntry(
                original_name     = c["name"],
                translated_name   = c.get("suggestedTranslation") or c["name"],
                gender            = c.get("gender") or "unknown",
                description       = c.get("description") or "",
                first_appearance  = chapter_number,
                is_main_character = c.get("role") == "protagonist",
            ))

    found_locations = []
    for l in raw_locations:
        is_new = l["name"].lower() not in known_locations
        found_locations.append(FoundLocation(
            name                  = l["name"],
            is_new                = is_new,
            suggested_translation = l.get("suggestedTranslation"),
        ))
        if is_new:
            update.new_locations.append(LocationEntry(
                original_name   = l["name"],
                translated_name = l.get("suggestedTranslation") or l["name"],
                type            = l.get("type") or "other",
                description     = l.get("description") or "",
            ))

    found_terms = []
    for t in raw_terms:
        is_new = t["term"].lower() not in known_terms
        found_terms.append(FoundTerm(
            term                  = t["term"],
            is_new                = is_new,
            suggested_translation = t.get("suggestedTranslation"),
            category              = t.get("category") or "other",
        ))
        if is_new:
            update.new_terms.append(TermEntry(
                original_term   = t["term"],
                translated_term = t.get("suggestedTranslation") or t["term"],
                category        = t.get("category") or "other",
                description     = t.get("description") or "",
            ))

    key_events = raw.get("keyEvents") or []

    return AnalysisResult(
        chapter_number   = chapter_number,
        found_characters = found_characters,
        found_locations  = found_locations,
        found_terms      = found_terms,
        chapter_summary  = raw.get("chapterSummary") or "",
        key_events       = [str(e) for e in key_events if e],
        mood             = raw.get("mood") or "",
        style_notes      = raw.get("styleNotes") or None,
        glossary_update  = update,
    )


def _has_text(item, key: str) -> bool:
    return isinstance(item, dict) and isinstance(item.get(key), str) and bool(item[key].strip())
