# context/agent.py
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from arcanelib.context.glossary import Glossary, GlossaryManager, GlossaryUpdate

if TYPE_CHECKING:
    from arcanelib.stages.models import AnalysisResult

# Capítulos previos que se inyectan como contexto
_PREVIOUS_CHAPTERS_IN_CONTEXT = 5


@dataclass
class StyleProfile:
    tone:            str = ""
    narrative_voice: str = ""
    dialogue_style:  str = ""
    writing_style:   str = ""
    target_audience: str = ""

    def to_prompt_text(self) -> str:
        lines = []
        for label, value in (
            ("Tono",            self.tone),
            ("Voz narrativa",   self.narrative_voice),
            ("Diálogos",        self.dialogue_style),
            ("Estilo",          self.writing_style),
            ("Público",         self.target_audience),
        ):
            if value:
                lines.append(f"- {label}: {value}")
        return "\n".join(lines)


@dataclass
class ChapterSummary:
    chapter_number:    int
    summary:           str
    key_events:        list[str]     = field(default_factory=list)
    active_characters: list[str]     = field(default_factory=list)
    location:          str           = ""
    title:             Optional[str] = None


@dataclass
class CurrentContext:
    last_events:       list[str] = field(default_factory=list)
    active_characters: list[str] = field(default_factory=list)
    current_location:  str       = ""
    current_mood:      str       = ""
    open_plot_threads: list[str] = field(default_factory=list)


@dataclass
class AgentContext:
    """Lo que el pipeline necesita del agente para construir los prompts."""
    glossary:          Glossary
    style_profile:     StyleProfile
    previous_chapters: list[ChapterSummary]
    current_context:   CurrentContext

    def to_prompt_text(self) -> str:
        """Situación narrativa actual y resumen de los dos últimos capítulos."""
        parts   = []
        current = self.current_context

        if current.last_events:
            parts.append("### Eventos recientes:")
            parts.append("\n".join(f"- {e}" for e in current.last_events))

        if current.active_characters:
            parts.append("\n### Personajes activos en la escena:")
            parts.append(", ".join(current.active_characters))

        if current.current_location:
            parts.append(f"\n### Ubicación actual: {current.current_location}")

        if self.previous_chapters:
            parts.append("\n### Resumen de capítulos anteriores:")
            for chapter in self.previous_chapters[-2:]:
                parts.append(f"Capítulo {chapter.chapter_number}: {chapter.summary}")

        return "\n".join(parts)


class NovelAgent:
    """
    Memoria de traducción de una novela.
    Mantiene glosario, perfil de estilo, resúmenes de capítulos
    y el contexto narrativo actual. Se serializa a JSON para vivir en SQLite.
    """

    def __init__(
        self,
        project_id:      int,
        title:           str,
        source_language: str,
        target_language: str,
        glossary:        Optional[Glossary]             = None,
        style_profile:   Optional[StyleProfile]         = None,
        chapters:        Optional[list[ChapterSummary]] = None,
        current_context: Optional[CurrentContext]       = None,
        created_at:      Optional[str]                  = None,
        updated_at:      Optional[str]                  = None,
    ):
        now = _now()
        self.project_id      = project_id
        self.title           = title
        self.source_language = source_language
        self.target_language = target_language
        self._glossary       = GlossaryManager(glossary or Glossary(), target_language)
        self.style_profile   = style_profile or StyleProfile()
        self._chapters       = chapters or []
        self.current_context = current_context or CurrentContext()
        self.created_at      = created_at or now
        self.updated_at      = updated_at or now

    @classmethod
    def create(
        cls,
        project_id:      int,
        title:           str,
        source_language: str = "English",
        target_language: str = "Russian",
    ) -> "NovelAgent":
        """Agente inicial para un proyecto nuevo."""
        return cls(project_id, title, source_language, target_language)

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    @property
    def glossary(self) -> Glossary:
        return self._glossary.glossary

    @property
    def glossary_manager(self) -> GlossaryManager:
        return self._glossary

    @property
    def chapter_count(self) -> int:
        return len(self._chapters)

    def get_context(self) -> AgentContext:
        return AgentContext(
            glossary          = self.glossary,
            style_profile     = self.style_profile,
            previous_chapters = self._chapters[-_PREVIOUS_CHAPTERS_IN_CONTEXT:],
            current_context   = self.current_context,
        )

    # ------------------------------------------------------------------
    # Mutación
    # ------------------------------------------------------------------

    def apply_analysis_result(self, result: "AnalysisResult") -> None:
        """
        Incorpora el análisis de un capítulo: glosario nuevo,
        contexto narrativo actual y notas de estilo acumuladas.
        """
        self.update_glossary(result.glossary_update)

        location = self.current_context.current_location
        if result.found_locations:
            location = result.found_locations[0].name

        self.current_context = CurrentContext(
            last_events       = result.key_events[-5:],
            active_characters = [c.name for c in result.found_characters],
            current_location  = location,
            current_mood      = result.mood,
            open_plot_threads = self.current_context.open_plot_threads,
        )

        if result.style_notes:
            current = self.style_profile.writing_style
            self.style_profile.writing_style = (
                f"{current}\n{result.style_notes}" if current else result.style_notes
            )

        self.updated_at = _now()

    def record_chapter_translation(self, summary: ChapterSummary) -> None:
        self._chapters.append(summary)
        self.updated_at = _now()

    def update_glossary(self, update: GlossaryUpdate) -> None:
        self._glossary.apply_update(update)
        self.updated_at = _now()

    def set_style_profile(self, **fields) -> None:
        for name, value in fields.items():
            if not hasattr(self.style_profile, name):
                raise ValueError(f"Campo de estilo desconocido: {name}")
            setattr(self.style_profile, name, value)
        self.updated_at = _now()

    # ------------------------------------------------------------------
    # Serialización
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        return json.dumps({
            "project_id":      self.project_id,
            "title":           self.title,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "glossary":        self.glossary.to_dict(),
            "style_profile":   asdict(self.style_profile),
            "chapters":        [asdict(c) for c in self._chapters],
            "current_context": asdict(self.current_context),
            "created_at":      self.created_at,
            "updated_at":      self.updated_at,
        }, ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, raw: str) -> "NovelAgent":
        data = json.loads(raw)
        return cls(
            project_id      = data["project_id"],
            title           = data.get("title", ""),
            source_language = data.get("source_language", "English"),
            target_language = data.get("target_language", "Russian"),
            glossary        = Glossary.from_dict(data.get("glossary", {})),
            style_profile   = StyleProfile(**data.get("style_profile", {})),
            chapters        = [ChapterSummary(**c) for c in data.get("chapters", [])],
            current_context = CurrentContext(**data.get("current_context", {})),
            created_at      = data.get("created_at"),
            updated_at      = data.get("updated_at"),
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
