# stages/translate.py
import logging
import time
from typing import Optional

from arcanelib import prompts
from arcanelib.chunker import Chunk, ChunkerConfig, ChunkMergeError, chunk_text, merge_chunks
from arcanelib.context.agent import AgentContext
from arcanelib.context.glossary import GlossaryManager
from arcanelib.markers import format_marker, has_markers, strip_marker_id, strip_markers
from arcanelib.providers.base import Provider, supports_json
from arcanelib.providers.models import CompletionOptions, Message, TokenUsage
from arcanelib.stages.models import (
    ChunkTranslation,
    StageResult,
    StageType,
    StructuredParagraph,
    TranslationDraft,
    elapsed_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2000

_MAX_TOKENS = 4096


class TranslateStage:
    """
    Etapa 2: traduce el capítulo chunk a chunk, en orden.

    Por chunk:
    - Si el proveedor soporta JSON, pide {"paragraphs": [...]} primero
    - Cualquier fallo del JSON cae a texto plano solo para ese chunk
    - Un error del proveedor deja el chunk como [ERROR: ...] y se sigue

    Los párrafos estructurados se re-emiten con su marcador para que la
    identidad sobreviva a la etapa de edición.
    """

    def __init__(
        self,
        provider:    Provider,
        source_lang: str   = "English",
        target_lang: str   = "Russian",
        temperature: float = 0.7,
    ):
        self._provider    = provider
        self._json        = supports_json(provider)   # se decide una vez
        self._source_lang = source_lang
        self._target_lang = target_lang
        self._options     = CompletionOptions(temperature=temperature, max_tokens=_MAX_TOKENS)

    def execute(
        self,
        source_text: str,
        context:     AgentContext,
        chunk_size:  Optional[int] = None,
    ) -> StageResult:
        started      = time.monotonic()
        total_tokens = 0

        try:
            glossary_text = GlossaryManager(context.glossary).to_prompt_text()
            context_text  = context.to_prompt_text()
            style_guide   = context.style_profile.to_prompt_text()

            chunks = chunk_text(source_text, ChunkerConfig(max_tokens=chunk_size or DEFAULT_CHUNK_SIZE))
            logger.info("Texto dividido en %d chunks para traducir", len(chunks))

            results: list[ChunkTranslation] = []
            last_error = ""
            for chunk in chunks:
                try:
                    translation, usage = self._translate_chunk(
                        chunk, glossary_text, context_text, style_guide,
                    )
                    total_tokens += usage.total
                    if not translation.translated.strip():
                        logger.warning("Chunk %d devolvió una traducción vacía", chunk.index)

                except Exception as e:
                    logger.error("Error traduciendo el chunk %d: %s", chunk.index, e)
                    last_error  = str(e)
                    translation = ChunkTranslation(
                        chunk_id   = chunk.id,
                        index      = chunk.index,
                        original   = chunk.content,
                        translated = f"[ERROR: {e}]",
                    )

                results.append(translation)

            if results and all(r.failed for r in results):
                logger.error("Todos los chunks fallaron (%d), la traducción se detiene", len(results))
                return self._failed(last_error or results[-1].translated, total_tokens, started)

            translated_text = merge_chunks([
                Chunk(id=r.chunk_id, content=r.translated, index=r.index, token_count=0)
                for r in results
            ])

            # Los ids auto_N no corresponden a ningún párrafo almacenado
            structured = [
                p for r in results for p in (r.paragraphs or [])
                if not p.id.startswith("auto_")
            ]

            return StageResult(
                stage       = StageType.TRANSLATE,
                success     = True,
                data        = TranslationDraft(
                    original_text   = source_text,
                    translated_text = translated_text,
                    chunk_results   = results,
                    paragraphs      = structured or None,
                ),
                tokens_used = total_tokens,
                duration_ms = elapsed_ms(started),
            )

        except ChunkMergeError as e:
            logger.error("La traducción quedó vacía al unir los chunks: %s", e)
            return self._failed(f"Translation resulted in empty text: {e}", total_tokens, started)

        except Exception as e:
            logger.error("Etapa de traducción falló: %s", e)
            return self._failed(str(e), total_tokens, started)

    # ------------------------------------------------------------------
    # Un chunk
    # ------------------------------------------------------------------

    def _translate_chunk(
        self,
        chunk:         Chunk,
        glossary_text: str,
        context_text:  str,
        style_guide:   str,
    ) -> tuple[ChunkTranslation, TokenUsage]:
        user_prompt = prompts.build_translator_prompt(
            source_text = chunk.content,
            glossary    = glossary_text,
            context     = context_text,
            style_guide = style_guide,
            overlap     = strip_markers(chunk.overlap),
        )

        if self._json:
            try:
                return self._translate_chunk_json(chunk, user_prompt)
            except Exception as e:
                logger.warning(
                    "Traducción JSON falló en el chunk %d, se usa texto plano: %s",
                    chunk.index, e,
                )

        messages = [
            Message(role="system", content=prompts.build_translator_system(
                self._source_lang, self._target_lang, json_output=False,
            )),
            Message(role="user", content=user_prompt),
        ]
        response = self._provider.complete(messages, self._options)
        translation = ChunkTranslation(
            chunk_id   = chunk.id,
            index      = chunk.index,
            original   = chunk.content,
            translated = (response.content or "").strip(),
        )
        return translation, response.tokens_used

    def _translate_chunk_json(
        self,
        chunk:       Chunk,
        user_prompt: str,
    ) -> tuple[ChunkTranslation, TokenUsage]:
        messages = [
            Message(role="system", content=prompts.build_translator_system(
                self._source_lang, self._target_lang, json_output=True,
            )),
            Message(role="user", content=user_prompt),
        ]
        response = self._provider.complete_json(messages, self._options)

        raw_paragraphs = response.data.get("paragraphs")
        if not isinstance(raw_paragraphs, list):
            raise ValueError("JSON sin el array 'paragraphs'")

        paragraphs = [
            StructuredParagraph(
                id         = strip_marker_id(str(p.get("id", ""))),
                translated = str(p.get("translated") or "").strip(),
            )
            for p in raw_paragraphs
            if isinstance(p, dict)
        ]
        paragraphs = [p for p in paragraphs if p.translated]
        if not paragraphs:
            raise ValueError("JSON sin ninguna traducción")

        if has_markers(chunk.content):
            translated = "\n\n".join(f"{format_marker(p.id)}{p.translated}" for p in paragraphs)
        else:
            translated = "\n\n".join(p.translated for p in paragraphs)

        translation = ChunkTranslation(
            chunk_id   = chunk.id,
            index      = chunk.index,
            original   = chunk.content,
            translated = translated,
            paragraphs = paragraphs,
        )
        return translation, response.tokens_used

    @staticmethod
    def _failed(error: str, tokens: int, started: float) -> StageResult:
        return StageResult(
            stage       = StageType.TRANSLATE,
            success     = False,
            error       = error,
            tokens_used = tokens,
            duration_ms = elapsed_ms(started),
        )
