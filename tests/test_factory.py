# tests/test_factory.py
from unittest.mock import MagicMock

import pytest

from arcanelib.factory import (
    build_chapter_service,
    build_providers,
    resolve_chunk_size,
    stage_providers,
)
from arcanelib.providers.base import Capability
from arcanelib.providers.failover import FailoverProvider, JSONFailoverProvider
from arcanelib.providers.models import EngineConfig, ProviderConfig
from arcanelib.storage.models import ProjectSettings, StoredProject
from arcanelib.storage.repository import Repository


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def make_provider_config(name: str, api_key="key-123", priority: int = 1) -> ProviderConfig:
    return ProviderConfig(
        name              = name,
        model             = f"{name}-model",
        priority          = priority,
        daily_token_limit = 1_000_000,
        api_key           = api_key,
    )


def make_provider(name: str, capability=Capability.JSON):
    provider = MagicMock()
    provider.name       = name
    provider.model_name = f"{name}-model"
    provider.capability = capability
    return provider


def make_project(stage_overrides=None) -> StoredProject:
    return StoredProject(
        id              = 1,
        name            = "Martial Peak",
        source_language = "English",
        target_language = "Russian",
        settings        = ProjectSettings(stage_providers=stage_overrides or {}),
        created_at      = "2025-01-01T00:00:00+00:00",
    )


@pytest.fixture
def repo():
    r = Repository(db_path=":memory:")
    yield r
    r.close()


# ------------------------------------------------------------------
# build_providers
# ------------------------------------------------------------------

class TestBuildProviders:

    def test_omite_proveedor_sin_api_key(self, monkeypatch):
        claude_class = MagicMock(name="ClaudeProvider")
        gemini_class = MagicMock(name="GeminiProvider")
        monkeypatch.setattr("arcanelib.factory._ADAPTERS", {"claude": claude_class, "gemini": gemini_class})

        config = EngineConfig(providers=[
            make_provider_config("gemini", api_key=None),
            make_provider_config("claude", priority=2),
        ])
        providers = build_providers(config)

        assert list(providers) == ["claude"]
        gemini_class.assert_not_called()
        claude_class.assert_called_once()

    def test_omite_proveedor_desconocido(self, monkeypatch):
        monkeypatch.setattr("arcanelib.factory._ADAPTERS", {"claude": MagicMock()})

        config = EngineConfig(providers=[make_provider_config("openai")])

        assert build_providers(config) == {}

    def test_respeta_el_orden_del_config(self, monkeypatch):
        monkeypatch.setattr(
            "arcanelib.factory._ADAPTERS",
            {"claude": MagicMock(), "gemini": MagicMock()},
        )
        config = EngineConfig(providers=[
            make_provider_config("gemini", priority=1),
            make_provider_config("claude", priority=2),
        ])

        assert list(build_providers(config)) == ["gemini", "claude"]

    def test_el_adaptador_recibe_config_y_repo(self, monkeypatch, repo):
        claude_class = MagicMock()
        monkeypatch.setattr("arcanelib.factory._ADAPTERS", {"claude": claude_class})
        provider_config = make_provider_config("claude")

        build_providers(EngineConfig(providers=[provider_config]), repo)

        claude_class.assert_called_once_with(provider_config, repo)


# ------------------------------------------------------------------
# stage_providers
# ------------------------------------------------------------------

class TestStageProviders:

    def setup_method(self):
        self.gemini    = make_provider("gemini")
        self.claude    = make_provider("claude", Capability.TEXT_ONLY)
        self.providers = {"gemini": self.gemini, "claude": self.claude}

    def test_usa_la_seccion_stages(self):
        config = EngineConfig(stages={
            "analysis":    ["gemini"],
            "translation": ["claude"],
            "editing":     ["claude"],
        })

        stages = stage_providers(config, self.providers)

        assert stages.analysis is self.gemini
        assert stages.translation is self.claude
        assert stages.editing is self.claude

    def test_ajustes_del_proyecto_tienen_prioridad(self):
        config  = EngineConfig(stages={"translation": ["claude"]})
        project = make_project({"translation": ["gemini"]})

        stages = stage_providers(config, self.providers, project)

        assert stages.translation is self.gemini

    def test_varios_nombres_forman_cadena_de_failover(self):
        config = EngineConfig(stages={"translation": ["claude", "gemini"]})

        stages = stage_providers(config, self.providers)

        assert isinstance(stages.translation, FailoverProvider)
        assert not isinstance(stages.translation, JSONFailoverProvider)

    def test_cadena_json_si_todos_soportan_json(self):
        other     = make_provider("gemini-pro")
        providers = {"gemini": self.gemini, "gemini-pro": other}
        config    = EngineConfig(stages={"analysis": ["gemini", "gemini-pro"]})

        stages = stage_providers(config, providers)

        assert isinstance(stages.analysis, JSONFailoverProvider)

    def test_nombres_desconocidos_caen_a_todos(self):
        config = EngineConfig(stages={"editing": ["openai"]})

        stages = stage_providers(config, {"gemini": self.gemini})

        assert stages.editing is self.gemini

    def test_sin_stages_usa_todos(self):
        stages = stage_providers(EngineConfig(), {"gemini": self.gemini})

        assert stages.analysis is self.gemini
        assert stages.translation is self.gemini
        assert stages.editing is self.gemini


# ------------------------------------------------------------------
# resolve_chunk_size
# ------------------------------------------------------------------

class TestResolveChunkSize:

    @pytest.mark.parametrize("preset, expected", [
        ("standard", 2000),
        ("large",    3500),
        ("xlarge",   5000),
    ])
    def test_presets(self, preset, expected):
        assert resolve_chunk_size(preset) == expected

    def test_none_deja_el_valor_del_proyecto(self):
        assert resolve_chunk_size(None) is None

    def test_preset_desconocido(self):
        with pytest.raises(ValueError, match="desconocido"):
            resolve_chunk_size("huge")


# ------------------------------------------------------------------
# build_chapter_service
# ------------------------------------------------------------------

class TestBuildChapterService:

    def test_sin_config_es_modo_demo(self, tmp_path, repo):
        service = build_chapter_service(config_path=str(tmp_path / "no-existe.yaml"), repo=repo)

        assert service.demo_mode

    def test_sin_api_keys_es_modo_demo(self, tmp_path, repo, monkeypatch):
        monkeypatch.delenv("ARCANE_TEST_KEY", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "providers:\n"
            "  - name: claude\n"
            "    api_key: ${ARCANE_TEST_KEY}\n",
            encoding="utf-8",
        )

        service = build_chapter_service(config_path=str(config_file), repo=repo)

        assert service.demo_mode

    def test_con_proveedor_no_es_demo(self, tmp_path, repo, monkeypatch):
        monkeypatch.setattr("arcanelib.factory._ADAPTERS", {"claude": MagicMock()})
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "providers:\n"
            "  - name: claude\n"
            "    api_key: sk-test\n",
            encoding="utf-8",
        )

        service = build_chapter_service(config_path=str(config_file), repo=repo)

        assert not service.demo_mode
