# arcanelib/service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from arcanelib.context.glossary import GlossaryUpdate
from arcanelib.markers import add_paragraph_markers
from arcanelib.paragraphs import (
    EditedBy,
    Paragraph,
    ParagraphStatus,
    has_valid_translation,
    is_preserved_in_partial,
    is_separator_paragraph,
    merge_paragraphs_to_text,
    parse_text_to_paragraphs,
)
from arcanelib.pipeline import PipelineOptions, PipelineResult, TranslationPipeline
from arcanelib.storage.models import ChapterStatus, GlossaryEntryType, StoredChapter, StoredProject
from arcanelib.storage.repository import Repository
from arcanelib.sync import SyncReport, TranslationOutput, sync_paragraphs

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[StoredProject], TranslationPipeline]

_ERROR_PLACEHOLDER = "❌ Error de traducción: {message}"
_DEMO_PREVIEW_CHARS = 50


# ------------------------------------------------------------------
# Errores del servicio
# ------------------------------------------------------------------

class ProjectNotFoundError(Exception):
    """El proyecto no existe."""
    pass


class ChapterNotFoundError(Exception):
    """El capítulo no existe en el proyecto indicado."""
    pass


class ChapterBusyError(Exception):
    """El capítulo ya tiene una traducción en curso."""
    pass


class ChapterContentError(Exception):
    """El capítulo no tiene texto original que traducir."""
    pass


class NothingToSyncError(Exception):
    """No hay traducción guardada con la que sincronizar los párrafos."""
    pass


class ParagraphNotFoundError(Exception):
    """El párrafo no existe en el capítulo."""
    pass


# ------------------------------------------------------------------
# Resultado de una ejecución (lo que consume el CLI)
# ------------------------------------------------------------------

@dataclass
class ChapterRunResult:
    chapter_id:  int
    status:      ChapterStatus
    skipped:     bool                 = False
    cancelled:   bool                 = False
    tokens_used: int                  = 0
    duration_ms: int                  = 0
    model:       str                  = ""
    sync:        Optional[SyncReport] = None
    error:       Optional[str]        = None


def is_valid_pipeline_result(result: PipelineResult) -> bool:
    """
    Heurística ajustable, no un contrato: un resultado sin texto,
    marcado como error o sin tokens ni duración no se guarda.
    """
    text = (result.final_translation or "").strip()
    if not text or text.startswith("[ERROR]"):
        return False
    return not (result.total_tokens_used == 0 and result.total_duration_ms == 0)


class ChapterService:
    """
    Ciclo de vida de la traducción de un capítulo.

    Responsabilidades:
    - Marcar el capítulo como en curso y rechazar ejecuciones simultáneas
    - Preparar el texto (modo parcial + marcadores) y llamar al pipeline
    - Sincronizar la salida con los párrafos y guardar el resultado
    - Cancelación cooperativa: si el estado cambió durante la ejecución,
      el resultado se descarta

    Sin pipeline_factory funciona en modo demo (sin proveedores).
    """

    def __init__(
        self,
        repo:             Repository,
        pipeline_factory: Optional[PipelineFactory] = None,
    ):
        self._repo             = repo
        self._pipeline_factory = pipeline_factory

    @property
    def demo_mode(self) -> bool:
        return self._pipeline_factory is None

    # ------------------------------------------------------------------
    # Traducción
    # ------------------------------------------------------------------

    def translate_chapter(
        self,
        project_id:           int,
        chapter_id:           int,
        translate_only_empty: bool           = False,
        skip_analysis:        Optional[bool] = None,
        skip_editing:         Optional[bool] = None,
        chunk_size:           Optional[int]  = None,
    ) -> ChapterRunResult:
        project = self._get_project(project_id)
        chapter = self._get_chapter(project_id, chapter_id)

        if chapter.status is ChapterStatus.TRANSLATING:
            raise ChapterBusyError(
                f"El capítulo {chapter.number} ya se está traduciendo (chapter_id={chapter_id})"
            )
        if not chapter.original_text.strip():
            raise ChapterContentError(f"El capítulo {chapter.number} no tiene texto original")

        self._repo.update_chapter(project_id, chapter_id, status=ChapterStatus.TRANSLATING)

        try:
            if self.demo_mode:
                return self._run_demo(chapter)

            settings = project.settings
            options  = PipelineOptions(
                skip_analysis = (not settings.enable_analysis) if skip_analysis is None else skip_analysis,
                skip_editing  = (not settings.enable_editing) if skip_editing is None else skip_editing,
                chunk_size    = chunk_size or settings.chunk_size,
            )
            return self._run(project, chapter, options, partial=translate_only_empty)

        except Exception as e:
            logger.exception("Error traduciendo el capítulo %d", chapter_id)
            self._mark_error(project_id, chapter_id, str(e))
            return ChapterRunResult(chapter_id=chapter_id, status=ChapterStatus.ERROR, error=str(e))

        finally:
            self._release(project_id, chapter_id)

    def _run(
        self,
        project: StoredProject,
        chapter: StoredChapter,
        options: PipelineOptions,
        partial: bool,
    ) -> ChapterRunResult:
        paragraphs = chapter.paragraphs or parse_text_to_paragraphs(chapter.original_text)

        # ── Paso 1: qué se traduce ────────────────────────────────────
        if partial:
            targets = [
                p for p in paragraphs
                if not is_separator_paragraph(p) and not is_preserved_in_partial(p)
            ]
            if not targets:
                self._log(f"Capítulo {chapter.number}: todos los párrafos ya están traducidos")
                self._repo.update_chapter(project.id, chapter.id, status=ChapterStatus.COMPLETED)
                return ChapterRunResult(
                    chapter_id = chapter.id,
                    status     = ChapterStatus.COMPLETED,
                    skipped    = True,
                )
            source = merge_paragraphs_to_text(targets, field="original_text")
            self._log(f"Capítulo {chapter.number}: modo parcial, {len(targets)}/{len(paragraphs)} párrafos")
        else:
            targets = paragraphs
            source  = chapter.original_text

        marked = add_paragraph_markers(source, targets)

        # ── Paso 2: pipeline ──────────────────────────────────────────
        pipeline = self._pipeline_factory(project)
        result   = pipeline.translate_chapter(marked, chapter.number, options)

        if not is_valid_pipeline_result(result):
            message = result.stage2.error or "resultado vacío"
            text    = result.final_translation if (result.final_translation or "").strip() \
                else _ERROR_PLACEHOLDER.format(message=message)
            self._repo.update_chapter(
                project.id, chapter.id,
                status          = ChapterStatus.ERROR,
                translated_text = text,
            )
            self._log(f"Capítulo {chapter.number}: traducción inválida ({message})")
            return ChapterRunResult(
                chapter_id  = chapter.id,
                status      = ChapterStatus.ERROR,
                tokens_used = result.total_tokens_used,
                duration_ms = result.total_duration_ms,
                error       = message,
            )

        draft      = result.draft
        structured = None
        if draft is not None and result.final_translation == draft.translated_text:
            structured = draft.paragraphs
        output = TranslationOutput.from_pipeline_text(result.final_translation, structured)

        # ── Paso 3: cancelación cooperativa ───────────────────────────
        current = self._repo.get_chapter(project.id, chapter.id)
        if current is None or current.status is not ChapterStatus.TRANSLATING:
            self._log(f"Capítulo {chapter.number}: cancelado, se descarta el resultado")
            return ChapterRunResult(
                chapter_id  = chapter.id,
                status      = current.status if current else ChapterStatus.PENDING,
                cancelled   = True,
                tokens_used = result.total_tokens_used,
                duration_ms = result.total_duration_ms,
            )

        # ── Paso 4: sincronizar y guardar ─────────────────────────────
        report = sync_paragraphs(current.paragraphs or paragraphs, output, partial=partial)

        if report.critical:
            message = "ninguna traducción se pudo asignar a los párrafos"
            self._mark_error(project.id, chapter.id, message)
            return ChapterRunResult(
                chapter_id  = chapter.id,
                status      = ChapterStatus.ERROR,
                tokens_used = result.total_tokens_used,
                duration_ms = result.total_duration_ms,
                sync        = report,
                error       = message,
            )

        model = pipeline.model_label(options)
        self._repo.update_chapter(
            project.id, chapter.id,
            translated_text   = merge_paragraphs_to_text(report.paragraphs),
            translated_chunks = result.translated_chunks,
            paragraphs        = report.paragraphs,
            status            = ChapterStatus.COMPLETED,
            translation_meta  = {
                "tokens_used":     result.total_tokens_used,
                "tokens_by_stage": result.tokens_by_stage,
                "duration_ms":     result.total_duration_ms,
                "model":           model,
                "translated_at":   _now(),
            },
        )

        added = self._store_glossary(project.id, result.glossary_updates)
        self._repo.save_agent_state(project.id, pipeline.agent)

        self._log(
            f"Capítulo {chapter.number}: {report.applied} párrafos traducidos, "
            f"{report.preserved} preservados, {added} entradas nuevas de glosario"
        )
        return ChapterRunResult(
            chapter_id  = chapter.id,
            status      = ChapterStatus.COMPLETED,
            tokens_used = result.total_tokens_used,
            duration_ms = result.total_duration_ms,
            model       = model,
            sync        = report,
        )

    def _run_demo(self, chapter: StoredChapter) -> ChapterRunResult:
        """Sin proveedores: marca cada párrafo con una traducción ficticia."""
        now        = _now()
        paragraphs = chapter.paragraphs or parse_text_to_paragraphs(chapter.original_text)
        updated    = [
            p if is_separator_paragraph(p) else p.with_translation(
                f"[DEMO {chapter.number}] {p.original_text[:_DEMO_PREVIEW_CHARS]}...", now,
            )
            for p in paragraphs
        ]
        self._repo.update_chapter(
            chapter.project_id, chapter.id,
            translated_text  = merge_paragraphs_to_text(updated),
            paragraphs       = updated,
            status           = ChapterStatus.COMPLETED,
            translation_meta = {
                "tokens_used":     0,
                "tokens_by_stage": {"analysis": 0, "translation": 0, "editing": 0},
                "duration_ms":     0,
                "model":           "demo",
                "translated_at":   now,
            },
        )
        self._log(f"Capítulo {chapter.number}: traducción demo (sin proveedores configurados)")
        return ChapterRunResult(chapter_id=chapter.id, status=ChapterStatus.COMPLETED, model="demo")

    # ------------------------------------------------------------------
    # Cancelación y recuperación
    # ------------------------------------------------------------------

    def cancel_translation(self, project_id: int, chapter_id: int) -> bool:
        """Devuelve el capítulo a pending. False si no estaba traduciéndose."""
        chapter = self._get_chapter(project_id, chapter_id)
        if chapter.status is not ChapterStatus.TRANSLATING:
            return False
        self._repo.update_chapter(project_id, chapter_id, status=ChapterStatus.PENDING)
        self._log(f"Capítulo {chapter.number}: traducción cancelada")
        return True

    def sync_chapter(self, project_id: int, chapter_id: int) -> SyncReport:
        """
        Recuperación: vuelve a repartir la traducción guardada entre los párrafos.
        Usa los chunks guardados o, si no hay, el texto traducido completo.
        Los párrafos que ya tienen texto traducido no se tocan.
        """
        chapter = self._get_chapter(project_id, chapter_id)

        if chapter.translated_chunks:
            output = TranslationOutput.from_chunks(chapter.translated_chunks)
        elif chapter.translated_text and chapter.translated_text.strip():
            output = TranslationOutput.from_text(chapter.translated_text)
        else:
            raise NothingToSyncError(f"El capítulo {chapter.number} no tiene traducción guardada")

        paragraphs = chapter.paragraphs or parse_text_to_paragraphs(chapter.original_text)
        partial    = any((p.translated_text or "").strip() for p in paragraphs)
        report     = sync_paragraphs(paragraphs, output, partial=partial)

        if report.applied:
            self._repo.update_chapter(
                project_id, chapter_id,
                paragraphs      = report.paragraphs,
                translated_text = merge_paragraphs_to_text(report.paragraphs),
            )
        return report

    # ------------------------------------------------------------------
    # Edición de párrafos
    # ------------------------------------------------------------------

    def set_paragraphs_status(
        self,
        project_id:    int,
        chapter_id:    int,
        status:        ParagraphStatus,
        paragraph_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Cambia el estado de varios párrafos a la vez (p. ej. aprobar todo).
        Sin paragraph_ids se aplica a todos los que tienen traducción válida.
        Devuelve cuántos párrafos cambiaron.
        """
        chapter = self._get_chapter(project_id, chapter_id)
        wanted  = set(paragraph_ids) if paragraph_ids is not None else None

        changed = 0
        updated: list[Paragraph] = []
        for p in chapter.paragraphs:
            selected = p.id in wanted if wanted is not None else has_valid_translation(p)
            if selected and p.status is not status:
                p.status = status
                changed += 1
            updated.append(p)

        if changed:
            self._repo.update_chapter(project_id, chapter_id, paragraphs=updated)
        return changed

    def edit_paragraph(
        self,
        project_id:   int,
        chapter_id:   int,
        paragraph_id: str,
        text:         str,
    ) -> Paragraph:
        """Edición manual: el párrafo queda como edited por el usuario."""
        chapter = self._get_chapter(project_id, chapter_id)

        target = next((p for p in chapter.paragraphs if p.id == paragraph_id), None)
        if target is None:
            raise ParagraphNotFoundError(f"Párrafo {paragraph_id} no encontrado en el capítulo {chapter.number}")

        target.translated_text = text
        target.status          = ParagraphStatus.EDITED
        target.edited_by       = EditedBy.USER
        target.edited_at       = _now()

        self._repo.update_chapter(
            project_id, chapter_id,
            paragraphs      = chapter.paragraphs,
            translated_text = merge_paragraphs_to_text(chapter.paragraphs),
        )
        return target

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_project(self, project_id: int) -> StoredProject:
        project = self._repo.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Proyecto {project_id} no encontrado")
        return project

    def _get_chapter(self, project_id: int, chapter_id: int) -> StoredChapter:
        chapter = self._repo.get_chapter(project_id, chapter_id)
        if chapter is None:
            raise ChapterNotFoundError(
                f"Capítulo {chapter_id} no encontrado en el proyecto {project_id}"
            )
        return chapter

    def _release(self, project_id: int, chapter_id: int) -> None:
        """Un capítulo que sigue en translating al salir (Ctrl+C) vuelve a pending."""
        current = self._repo.get_chapter(project_id, chapter_id)
        if current is not None and current.status is ChapterStatus.TRANSLATING:
            self._repo.update_chapter(project_id, chapter_id, status=ChapterStatus.PENDING)
            self._log(f"Capítulo {current.number}: ejecución interrumpida, vuelve a pending")

    def _mark_error(self, project_id: int, chapter_id: int, message: str) -> None:
        """Estado error conservando la traducción previa; placeholder solo si no había."""
        current  = self._repo.get_chapter(project_id, chapter_id)
        existing = current.translated_text if current else None
        self._repo.update_chapter(
            project_id, chapter_id,
            status          = ChapterStatus.ERROR,
            translated_text = existing if (existing or "").strip()
                              else _ERROR_PLACEHOLDER.format(message=message),
        )

    def _store_glossary(self, project_id: int, update: GlossaryUpdate) -> int:
        added = 0
        for c in update.new_characters:
            added += self._repo.add_glossary_entry(
                project_id, GlossaryEntryType.CHARACTER.value, c.original_name, c.translated_name,
                gender=c.gender, description=c.description,
            )
        for l in update.new_locations:
            added += self._repo.add_glossary_entry(
                project_id, GlossaryEntryType.LOCATION.value, l.original_name, l.translated_name,
                description=l.description,
            )
        for t in update.new_terms:
            added += self._repo.add_glossary_entry(
                project_id, GlossaryEntryType.TERM.value, t.original_term, t.translated_term,
                description=t.description,
            )
        return added

    @staticmethod
    def _log(message: str) -> None:
        print(f"[arcane] {message}")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
