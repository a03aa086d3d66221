# arcanelib/pipeline.py
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from arcanelib.context.agent import AgentContext, ChapterSummary, NovelAgent
from arcanelib.context.glossary import GlossaryUpdate
from arcanelib.markers import strip_markers
from arcanelib.providers.base import Provider, supports_json
from arcanelib.stages import AnalyzeStage, EditStage, TranslateStage
from arcanelib.stages.models import (
    AnalysisResult,
    StageResult,
    StageType,
    StructuredParagraph,
    TranslationDraft,
    elapsed_ms,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Errores de configuración
# ------------------------------------------------------------------

class PipelineConfigError(Exception):
    """Faltan proveedores para construir el pipeline."""
    pass


class ProviderCapabilityError(Exception):
    """El proveedor asignado a una etapa no tiene la capacidad que esa etapa exige."""
    pass


# ------------------------------------------------------------------
# Modelos
# ------------------------------------------------------------------

@dataclass
class StageProviders:
    analysis:    Optional[Provider] = None
    translation: Optional[Provider] = None
    editing:     Optional[Provider] = None


@dataclass
class PipelineOptions:
    skip_analysis: bool          = False
    skip_editing:  bool          = False
    chunk_size:    Optional[int] = None


@dataclass
class PipelineResult:
    chapter_number:    int
    original_text:     str
    stage1:            StageResult
    stage2:            StageResult
    stage3:            StageResult
    final_translation: str
    total_tokens_used: int
    total_duration_ms: int
    updated_context:   Optional[AgentContext] = field(default=None, repr=False)

    @property
    def success(self) -> bool:
        return self.stage2.success

    @property
    def tokens_by_stage(self) -> dict[str, int]:
        return {
            "analysis":    self.stage1.tokens_used,
            "translation": self.stage2.tokens_used,
            "editing":     self.stage3.tokens_used,
        }

    @property
    def analysis(self) -> Optional[AnalysisResult]:
        return self.stage1.data if self.stage1.success else None

    @property
    def glossary_updates(self) -> GlossaryUpdate:
        analysis = self.analysis
        return analysis.glossary_update if analysis else GlossaryUpdate()

    @property
    def draft(self) -> Optional[TranslationDraft]:
        return self.stage2.data if self.stage2.success else None

    @property
    def structured_paragraphs(self) -> Optional[list[StructuredParagraph]]:
        draft = self.draft
        return draft.paragraphs if draft else None

    @property
    def translated_chunks(self) -> list[str]:
        draft = self.draft
        return [r.translated for r in draft.chunk_results] if draft else []


# ------------------------------------------------------------------
# Pipeline
# ------------------------------------------------------------------

class TranslationPipeline:
    """
    Analyze → Translate → Edit sobre un capítulo.

    Reglas de degradación:
    - Análisis fallido: se continúa sin él
    - Traducción fallida: el resultado es un error y la edición no se ejecuta
    - Edición fallida: se usa la traducción de la etapa 2

    La capacidad JSON de cada proveedor se comprueba aquí, una sola vez.
    """

    def __init__(
        self,
        agent:       NovelAgent,
        providers:   Optional[StageProviders] = None,
        provider:    Optional[Provider]       = None,
        temperature: float                    = 0.7,
    ):
        if providers is None:
            if provider is None:
                raise PipelineConfigError("Se necesita `providers` o `provider`")
            providers = StageProviders(analysis=provider, translation=provider, editing=provider)

        missing = [
            name for name in ("analysis", "translation", "editing")
            if getattr(providers, name) is None
        ]
        if missing:
            raise PipelineConfigError(f"Faltan proveedores para: {', '.join(missing)}")

        if not supports_json(providers.analysis):
            raise ProviderCapabilityError(
                f"El proveedor de análisis '{providers.analysis.name}' no soporta salida JSON"
            )

        self._check_quality = supports_json(providers.editing)
        if not self._check_quality:
            logger.warning(
                "El proveedor de edición '%s' no soporta JSON: se omite el chequeo de calidad",
                providers.editing.name,
            )

        self._providers = providers
        self._agent     = agent

        self._analyze   = AnalyzeStage(providers.analysis, agent.source_language, agent.target_language)
        self._translate = TranslateStage(
            providers.translation,
            source_lang = agent.source_language,
            target_lang = agent.target_language,
            temperature = temperature,
        )
        self._edit = EditStage(providers.editing, agent.target_language)

    @property
    def agent(self) -> NovelAgent:
        return self._agent

    @agent.setter
    def agent(self, agent: NovelAgent) -> None:
        self._agent = agent

    def translate_chapter(
        self,
        source_text:    str,
        chapter_number: int,
        options:        Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        options = options or PipelineOptions()
        started = time.monotonic()

        # ── Etapa 1: análisis ─────────────────────────────────────────
        if options.skip_analysis:
            stage1 = StageResult.skipped(StageType.ANALYZE)
        else:
            self._log(f"Capítulo {chapter_number}: analizando...")
            stage1 = self._analyze.execute(strip_markers(source_text), chapter_number, self._agent.glossary)
            if stage1.success:
                self._agent.apply_analysis_result(stage1.data)
            else:
                logger.warning(
                    "Análisis degradado en el capítulo %d: %s", chapter_number, stage1.error,
                )

        context = self._agent.get_context()

        # ── Etapa 2: traducción ───────────────────────────────────────
        self._log(f"Capítulo {chapter_number}: traduciendo...")
        stage2 = self._translate.execute(source_text, context, options.chunk_size)

        if not stage2.success:
            self._log(f"Capítulo {chapter_number}: la traducción falló ({stage2.error})")
            return PipelineResult(
                chapter_number    = chapter_number,
                original_text     = source_text,
                stage1            = stage1,
                stage2            = stage2,
                stage3            = StageResult(stage=StageType.EDIT, success=False),
                final_translation = f"[ERROR] Translation failed: {stage2.error}",
                total_tokens_used = stage1.tokens_used + stage2.tokens_used,
                total_duration_ms = elapsed_ms(started),
                updated_context   = self._agent.get_context(),
            )

        draft: TranslationDraft = stage2.data

        # ── Etapa 3: edición ──────────────────────────────────────────
        if options.skip_editing:
            stage3 = StageResult.skipped(StageType.EDIT)
            final  = draft.translated_text
        else:
            self._log(f"Capítulo {chapter_number}: editando...")
            stage3 = self._edit.execute(
                draft.translated_text,
                strip_markers(source_text),
                context,
                check_quality = self._check_quality,
                chunk_size    = options.chunk_size,
            )
            if stage3.success:
                final = stage3.data.final_text
            else:
                logger.warning(
                    "Edición fallida en el capítulo %d, se usa la traducción: %s",
                    chapter_number, stage3.error,
                )
                final = draft.translated_text

        # ── Registro en el agente ─────────────────────────────────────
        analysis = stage1.data if stage1.success else None
        self._agent.record_chapter_translation(ChapterSummary(
            chapter_number    = chapter_number,
            summary           = analysis.chapter_summary if analysis else "",
            key_events        = list(analysis.key_events) if analysis else [],
            active_characters = [c.name for c in analysis.found_characters] if analysis else [],
            location          = analysis.found_locations[0].name if analysis and analysis.found_locations else "",
        ))

        total_tokens = stage1.tokens_used + stage2.tokens_used + stage3.tokens_used
        self._log(f"Capítulo {chapter_number}: completado ({total_tokens} tokens)")

        return PipelineResult(
            chapter_number    = chapter_number,
            original_text     = source_text,
            stage1            = stage1,
            stage2            = stage2,
            stage3            = stage3,
            final_translation = final,
            total_tokens_used = total_tokens,
            total_duration_ms = elapsed_ms(started),
            updated_context   = self._agent.get_context(),
        )

    def translate_chapters(
        self,
        chapters: list[tuple[int, str]],
        options:  Optional[PipelineOptions] = None,
    ) -> list[PipelineResult]:
        """Traduce varios capítulos en orden; el agente acumula contexto entre ellos."""
        return [
            self.translate_chapter(text, number, options)
            for number, text in chapters
        ]

    def model_label(self, options: Optional[PipelineOptions] = None) -> str:
        """Modelos de las etapas activas, p. ej. 'gemini-2.0-flash/claude-haiku'."""
        options = options or PipelineOptions()
        models  = []
        if not options.skip_analysis:
            models.append(self._providers.analysis.model_name)
        models.append(self._providers.translation.model_name)
        if not options.skip_editing:
            models.append(self._providers.editing.model_name)
        return "/".join(models)

    @staticmethod
    def _log(message: str) -> None:
        print(f"[arcane] {message}")
