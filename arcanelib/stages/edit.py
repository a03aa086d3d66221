# stages/edit.py
import logging
import time
from typing import Optional

from arcanelib import prompts
from arcanelib.chunker import Chunk, ChunkerConfig, ChunkMergeError, chunk_text, merge_chunks
from arcanelib.chunker.chunker import split_paragraphs
from arcanelib.chunker.token_estimator import estimate_tokens
from arcanelib.context.agent import AgentContext
from arcanelib.context.glossary import GlossaryManager
from arcanelib.providers.base import Provider, supports_json
from arcanelib.providers.models import CompletionOptions, Message
from arcanelib.stages.models import (
    EditChange,
    EditedTranslation,
    StageResult,
    StageType,
    elapsed_ms,
)

logger = logging.getLogger(__name__)

# Por encima de este tamaño la edición se hace por chunks
_SINGLE_CALL_MAX_TOKENS = 3000
_DEFAULT_EDIT_CHUNK_SIZE = 2000

_EDIT_OPTIONS    = CompletionOptions(temperature=0.5, max_tokens=4096)
_QUALITY_OPTIONS = CompletionOptions(temperature=0.3, max_tokens=1024)

_DEFAULT_QUALITY_SCORE = 7
_CHANGE_PREVIEW_CHARS  = 100


class EditStage:
    """
    Etapa 3: pule la traducción.

    Textos cortos: una sola llamada + chequeo de calidad opcional.
    Textos largos (o chunk_size explícito): edición por chunks; un chunk
    que falla o vuelve vacío conserva su traducción sin editar.
    """

    def __init__(self, provider: Provider, target_lang: str = "Russian"):
        self._provider    = provider
        self._can_score   = supports_json(provider)
        self._target_lang = target_lang

    def execute(
        self,
        translated_text: str,
        original_text:   str,
        context:         AgentContext,
        check_quality:   bool          = True,
        chunk_size:      Optional[int] = None,
    ) -> StageResult:
        started      = time.monotonic()
        total_tokens = 0

        try:
            glossary_text = GlossaryManager(context.glossary).to_prompt_text()
            style_notes   = _build_style_notes(context)

            chunked = chunk_size is not None or estimate_tokens(translated_text) > _SINGLE_CALL_MAX_TOKENS

            if chunked:
                edited_text, total_tokens = self._edit_chunked(
                    translated_text,
                    original_text,
                    glossary_text,
                    style_notes,
                    chunk_size or _DEFAULT_EDIT_CHUNK_SIZE,
                )
            else:
                response = self._provider.complete(
                    self._messages(translated_text, original_text, glossary_text, style_notes),
                    _EDIT_OPTIONS,
                )
                total_tokens += response.tokens_used.total
                edited_text = (response.content or "").strip()
                if not edited_text:
                    raise ValueError("El editor devolvió un texto vacío")

            quality_score = None
            if check_quality and not chunked and self._can_score:
                quality_score, quality_tokens = self._check_quality(
                    edited_text, original_text, glossary_text,
                )
                total_tokens += quality_tokens

            return StageResult(
                stage       = StageType.EDIT,
                success     = True,
                data        = EditedTranslation(
                    final_text    = edited_text,
                    changes       = detect_changes(translated_text, edited_text),
                    quality_score = quality_score,
                ),
                tokens_used = total_tokens,
                duration_ms = elapsed_ms(started),
            )

        except Exception as e:
            logger.warning("Etapa de edición falló: %s", e)
            return StageResult(
                stage       = StageType.EDIT,
                success     = False,
                error       = str(e),
                tokens_used = total_tokens,
                duration_ms = elapsed_ms(started),
            )

    # ------------------------------------------------------------------
    # Edición por chunks
    # ------------------------------------------------------------------

    def _edit_chunked(
        self,
        translated_text: str,
        original_text:   str,
        glossary_text:   str,
        style_notes:     str,
        chunk_size:      int,
    ) -> tuple[str, int]:
        config            = ChunkerConfig(max_tokens=chunk_size)
        translated_chunks = chunk_text(translated_text, config)
        original_chunks   = chunk_text(original_text, config)
        logger.info("Edición por chunks: %d chunks", len(translated_chunks))

        edited: list[Chunk] = []
        tokens = 0

        for chunk in translated_chunks:
            # Los límites de chunk del original no tienen por qué coincidir
            original = original_chunks[chunk.index].content if chunk.index < len(original_chunks) else ""
            content  = chunk.content

            try:
                response = self._provider.complete(
                    self._messages(chunk.content, original, glossary_text, style_notes),
                    _EDIT_OPTIONS,
                )
                tokens += response.tokens_used.total
                if response.content and response.content.strip():
                    content = response.content.strip()
                else:
                    logger.warning("Chunk %d devolvió una edición vacía, se conserva la traducción", chunk.index)

            except Exception as e:
                logger.error("Error editando el chunk %d: %s", chunk.index, e)

            edited.append(Chunk(id=chunk.id, content=content, index=chunk.index, token_count=0))

        try:
            return merge_chunks(edited), tokens
        except ChunkMergeError as e:
            logger.error("No se pudieron unir los chunks editados, se usa la traducción: %s", e)
            return translated_text, tokens

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _messages(
        self,
        translated_text: str,
        original_text:   str,
        glossary_text:   str,
        style_notes:     str,
    ) -> list[Message]:
        return [
            Message(role="system", content=prompts.build_editor_system(self._target_lang)),
            Message(role="user", content=prompts.build_editor_prompt(
                translated_text = translated_text,
                original_text   = original_text,
                glossary        = glossary_text,
                style_notes     = style_notes or None,
            )),
        ]

    def _check_quality(
        self,
        translated_text: str,
        original_text:   str,
        glossary_text:   str,
    ) -> tuple[int, int]:
        """Devuelve (score, tokens). Un fallo puntúa 0 y no rompe la etapa."""
        messages = [
            Message(role="system", content=prompts.build_quality_system(self._target_lang)),
            Message(role="user", content=prompts.build_quality_prompt(
                translated_text, original_text, glossary_text,
            )),
        ]
        try:
            response = self._provider.complete_json(messages, _QUALITY_OPTIONS)
        except Exception as e:
            logger.warning("Chequeo de calidad falló: %s", e)
            return 0, 0

        score = response.data.get("score")
        if score is None:
            score = _DEFAULT_QUALITY_SCORE
        return int(score), response.tokens_used.total


def detect_changes(before: str, after: str) -> list[EditChange]:
    """Compara párrafo a párrafo; solo registra pares no vacíos que difieren."""
    before_paragraphs = split_paragraphs(before)
    after_paragraphs  = split_paragraphs(after)

    changes = []
    for i in range(max(len(before_paragraphs), len(after_paragraphs))):
        old = before_paragraphs[i] if i < len(before_paragraphs) else ""
        new = after_paragraphs[i] if i < len(after_paragraphs) else ""
        if old and new and old != new:
            changes.append(EditChange(
                before = _preview(old),
                after  = _preview(new),
                reason = "Editorial improvement",
            ))
    return changes


def _preview(text: str) -> str:
    if len(text) > _CHANGE_PREVIEW_CHARS:
        return text[:_CHANGE_PREVIEW_CHARS] + "..."
    return text


def _build_style_notes(context: AgentContext) -> str:
    profile = context.style_profile
    notes   = []
    if profile.tone:
        notes.append(f"Mantén el tono: {profile.tone}")
    if profile.dialogue_style:
        notes.append(f"Estilo de los diálogos: {profile.dialogue_style}")
    if profile.writing_style:
        notes.append(f"Rasgos del autor: {profile.writing_style}")
    return "\n".join(notes)
