# context/cache.py
import logging
from typing import TYPE_CHECKING

from arcanelib.context.agent import NovelAgent
from arcanelib.context.glossary import CharacterEntry, LocationEntry, TermEntry
from arcanelib.storage.models import GlossaryEntryType

if TYPE_CHECKING:
    from arcanelib.storage.models import StoredProject
    from arcanelib.storage.repository import Repository

logger = logging.getLogger(__name__)


class ContextCache:
    """
    Agentes de novela en memoria, uno por proyecto.
    Evita reconstruir el agente desde SQLite en cada capítulo.
    Hay que invalidar la entrada cuando el glosario o el estado
    del proyecto se modifican fuera del pipeline.
    """

    def __init__(self):
        self._agents: dict[int, NovelAgent] = {}

    def get_or_create(self, project: "StoredProject", repo: "Repository") -> NovelAgent:
        agent = self._agents.get(project.id)
        if agent is not None:
            return agent

        agent = self._load(project, repo)
        self._agents[project.id] = agent
        return agent

    def invalidate(self, project_id: int) -> None:
        self._agents.pop(project_id, None)

    def clear(self) -> None:
        self._agents.clear()

    def __contains__(self, project_id: int) -> bool:
        return project_id in self._agents

    # ------------------------------------------------------------------
    # Carga
    # ------------------------------------------------------------------

    @staticmethod
    def _load(project: "StoredProject", repo: "Repository") -> NovelAgent:
        """
        Restaura el último estado guardado del agente.
        Sin estado previo, crea uno nuevo sembrado con el glosario del proyecto.
        """
        agent = repo.get_agent_state(project.id)
        if agent is not None:
            logger.debug("Agente del proyecto %d restaurado desde SQLite", project.id)
            return agent

        agent = NovelAgent.create(
            project_id      = project.id,
            title           = project.name,
            source_language = project.source_language,
            target_language = project.target_language,
        )

        manager = agent.glossary_manager
        for entry in repo.list_glossary_entries(project.id):
            if entry.type == GlossaryEntryType.CHARACTER.value:
                manager.add_character(CharacterEntry(
                    original_name   = entry.original,
                    translated_name = entry.translated,
                    gender          = entry.gender or "unknown",
                    description     = entry.description,
                ))
            elif entry.type == GlossaryEntryType.LOCATION.value:
                manager.add_location(LocationEntry(
                    original_name   = entry.original,
                    translated_name = entry.translated,
                    description     = entry.description,
                ))
            else:
                manager.add_term(TermEntry(
                    original_term   = entry.original,
                    translated_term = entry.translated,
                    description     = entry.description,
                ))

        logger.debug(
            "Agente nuevo para el proyecto %d con %d entradas de glosario",
            project.id,
            manager.character_count + manager.location_count + manager.term_count,
        )
        return agent
