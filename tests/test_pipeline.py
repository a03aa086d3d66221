# tests/test_pipeline.py
from unittest.mock import MagicMock

import pytest

from arcanelib.context.agent import NovelAgent
from arcanelib.pipeline import (
    PipelineConfigError,
    PipelineOptions,
    ProviderCapabilityError,
    StageProviders,
    TranslationPipeline,
)
from arcanelib.providers.base import Capability
from arcanelib.providers.models import Completion, JSONCompletion, TokenUsage


ANALYSIS_JSON = {
    "characters":     [{"name": "Lin Feng", "suggestedTranslation": "Линь Фэн", "gender": "male"}],
    "locations":      [{"name": "Azure Cloud Sect", "suggestedTranslation": "Секта Лазурного Облака"}],
    "terms":          [],
    "chapterSummary": "Lin Feng saluda al mundo.",
    "keyEvents":      ["saludo"],
    "mood":           "alegre",
}


def make_analyzer(raises=None):
    provider = MagicMock()
    provider.name       = "gemini"
    provider.model_name = "gemini-2.0-flash"
    provider.capability = Capability.JSON
    if raises:
        provider.complete_json.side_effect = raises
    else:
        provider.complete_json.return_value = JSONCompletion(
            data=ANALYSIS_JSON, tokens_used=TokenUsage(100, 50),
        )
    return provider


def make_text_provider(name, model, content=None, raises=None):
    provider = MagicMock()
    provider.name       = name
    provider.model_name = model
    provider.capability = Capability.TEXT_ONLY
    if raises:
        provider.complete.side_effect = raises
    else:
        provider.complete.return_value = Completion(content=content, tokens_used=TokenUsage(100, 100))
    return provider


@pytest.fixture
def agent():
    return NovelAgent.create(1, "Martial Peak", "English", "Russian")


@pytest.fixture
def providers():
    return StageProviders(
        analysis    = make_analyzer(),
        translation = make_text_provider("claude", "claude-haiku", "Привет.\n\nМир."),
        editing     = make_text_provider("local", "local-editor", "Привет!\n\nМир!"),
    )


# ------------------------------------------------------------------
# Construcción
# ------------------------------------------------------------------

class TestConfiguracion:

    def test_sin_proveedores_lanza_error(self, agent):
        with pytest.raises(PipelineConfigError):
            TranslationPipeline(agent)

    def test_proveedor_faltante_lanza_error(self, agent):
        with pytest.raises(PipelineConfigError, match="editing"):
            TranslationPipeline(agent, providers=StageProviders(
                analysis    = make_analyzer(),
                translation = make_text_provider("claude", "m", "x"),
            ))

    def test_analisis_sin_json_lanza_error(self, agent):
        with pytest.raises(ProviderCapabilityError):
            TranslationPipeline(agent, providers=StageProviders(
                analysis    = make_text_provider("local", "m", "x"),
                translation = make_text_provider("claude", "m", "x"),
                editing     = make_text_provider("claude", "m", "x"),
            ))

    def test_un_solo_proveedor_para_todo(self, agent):
        provider = make_analyzer()
        pipeline = TranslationPipeline(agent, provider=provider)
        assert pipeline.model_label() == "gemini-2.0-flash/gemini-2.0-flash/gemini-2.0-flash"


# ------------------------------------------------------------------
# Flujo completo
# ------------------------------------------------------------------

class TestTranslateChapter:

    def test_flujo_completo(self, agent, providers):
        pipeline = TranslationPipeline(agent, providers)
        result   = pipeline.translate_chapter("Hello.\n\nWorld.", 1)

        assert result.success
        assert result.final_translation == "Привет!\n\nМир!"
        assert result.tokens_by_stage == {"analysis": 150, "translation": 200, "editing": 200}
        assert result.total_tokens_used == 550
        assert result.stage2.data.translated_text == "Привет.\n\nМир."

    def test_analisis_actualiza_el_agente(self, agent, providers):
        pipeline = TranslationPipeline(agent, providers)
        result   = pipeline.translate_chapter("Hello.", 1)

        assert agent.glossary_manager.find_character("Lin Feng") is not None
        assert agent.chapter_count == 1
        assert result.updated_context.previous_chapters[0].summary == "Lin Feng saluda al mundo."
        assert [c.original_name for c in result.glossary_updates.new_characters] == ["Lin Feng"]

    def test_glosario_llega_al_traductor(self, agent, providers):
        TranslationPipeline(agent, providers).translate_chapter("Hello.", 1)

        messages = providers.translation.complete.call_args.args[0]
        assert "Lin Feng → Линь Фэн" in messages[-1].content

    def test_scenario_c_traduccion_fallida(self, agent, providers):
        providers.translation = make_text_provider("claude", "claude-haiku", "   ")
        result = TranslationPipeline(agent, providers).translate_chapter("Hello.", 1)

        assert not result.success
        assert result.final_translation.startswith("[ERROR]")
        assert not result.stage3.success
        providers.editing.complete.assert_not_called()
        assert agent.chapter_count == 0

    def test_proveedor_caido_no_llega_a_edicion(self, agent, providers):
        providers.translation = make_text_provider("claude", "claude-haiku", raises=RuntimeError("network down"))
        result = TranslationPipeline(agent, providers).translate_chapter("Hello.\n\nWorld.", 1)

        assert not result.success
        assert result.final_translation == "[ERROR] Translation failed: network down"
        providers.editing.complete.assert_not_called()
        providers.editing.complete_json.assert_not_called()

    def test_analisis_fallido_no_detiene(self, agent, providers):
        providers.analysis = make_analyzer(raises=ConnectionError("timeout"))
        result = TranslationPipeline(agent, providers).translate_chapter("Hello.", 1)

        assert result.success
        assert not result.stage1.success
        assert result.analysis is None
        assert result.glossary_updates.is_empty()

    def test_edicion_fallida_usa_la_traduccion(self, agent, providers):
        providers.editing = make_text_provider("local", "m", raises=ConnectionError("timeout"))
        result = TranslationPipeline(agent, providers).translate_chapter("Hello.\n\nWorld.", 1)

        assert result.success
        assert not result.stage3.success
        assert result.final_translation == "Привет.\n\nМир."

    def test_skip_analysis(self, agent, providers):
        options = PipelineOptions(skip_analysis=True)
        result  = TranslationPipeline(agent, providers).translate_chapter("Hello.", 1, options)

        providers.analysis.complete_json.assert_not_called()
        assert result.stage1.success
        assert result.tokens_by_stage["analysis"] == 0

    def test_skip_editing(self, agent, providers):
        options = PipelineOptions(skip_editing=True)
        result  = TranslationPipeline(agent, providers).translate_chapter("Hello.", 1, options)

        providers.editing.complete.assert_not_called()
        assert result.final_translation == "Привет.\n\nМир."

    def test_marcadores_fuera_del_analisis_y_la_referencia(self, agent, providers):
        source = "--para:p0--Hello.\n\n--para:p1--World."
        TranslationPipeline(agent, providers).translate_chapter(source, 1)

        analysis_prompt = providers.analysis.complete_json.call_args.args[0][-1].content
        translate_prompt = providers.translation.complete.call_args.args[0][-1].content
        edit_prompt      = providers.editing.complete.call_args.args[0][-1].content

        assert "--para:" not in analysis_prompt
        assert "--para:p0--Hello." in translate_prompt
        assert "--para:p0--Hello." not in edit_prompt

    def test_translate_chapters_acumula_contexto(self, agent, providers):
        pipeline = TranslationPipeline(agent, providers)
        results  = pipeline.translate_chapters([(1, "Hello."), (2, "World.")])

        assert [r.chapter_number for r in results] == [1, 2]
        assert agent.chapter_count == 2
        second_prompt = providers.translation.complete.call_args.args[0][-1].content
        assert "Capítulo 1: Lin Feng saluda al mundo." in second_prompt


class TestModelLabel:

    def test_etapas_activas(self, agent, providers):
        pipeline = TranslationPipeline(agent, providers)
        assert pipeline.model_label() == "gemini-2.0-flash/claude-haiku/local-editor"
        assert pipeline.model_label(PipelineOptions(skip_analysis=True, skip_editing=True)) == "claude-haiku"
