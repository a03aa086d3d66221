# tests/context/test_cache.py
from unittest.mock import MagicMock

import pytest

from arcanelib.context.agent import NovelAgent
from arcanelib.context.cache import ContextCache
from arcanelib.storage.models import GlossaryEntry, ProjectSettings, StoredProject


def make_project(project_id: int = 1) -> StoredProject:
    return StoredProject(
        id              = project_id,
        name            = "Martial Peak",
        source_language = "English",
        target_language = "Russian",
        settings        = ProjectSettings(),
        created_at      = "2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.get_agent_state.return_value = None
    repo.list_glossary_entries.return_value = []
    return repo


class TestContextCache:

    def test_misma_instancia_por_proyecto(self, repo):
        cache   = ContextCache()
        project = make_project()

        first  = cache.get_or_create(project, repo)
        second = cache.get_or_create(project, repo)

        assert first is second
        repo.get_agent_state.assert_called_once_with(1)
        assert 1 in cache

    def test_usa_el_estado_guardado(self, repo):
        saved = NovelAgent.create(1, "Guardado")
        repo.get_agent_state.return_value = saved

        assert ContextCache().get_or_create(make_project(), repo) is saved

    def test_agente_nuevo_con_glosario_del_repositorio(self, repo):
        repo.list_glossary_entries.return_value = [
            GlossaryEntry(1, 1, "character", "Lin Feng", "Линь Фэн", gender="male"),
            GlossaryEntry(2, 1, "location", "Azure Cloud Sect", "Секта Лазурного Облака"),
            GlossaryEntry(3, 1, "term", "Qi", "Ци", description="energía"),
        ]

        agent = ContextCache().get_or_create(make_project(), repo)

        assert agent.title == "Martial Peak"
        assert agent.target_language == "Russian"
        assert agent.glossary_manager.find_character("Lin Feng").gender == "male"
        assert agent.glossary_manager.find_location("Azure Cloud Sect") is not None
        assert agent.glossary_manager.find_term("Qi").description == "energía"

    def test_invalidate_fuerza_recarga(self, repo):
        cache   = ContextCache()
        project = make_project()

        first = cache.get_or_create(project, repo)
        cache.invalidate(project.id)
        second = cache.get_or_create(project, repo)

        assert first is not second
        assert repo.get_agent_state.call_count == 2

    def test_clear(self, repo):
        cache = ContextCache()
        cache.get_or_create(make_project(1), repo)
        cache.get_or_create(make_project(2), repo)
        cache.clear()
        assert 1 not in cache and 2 not in cache
