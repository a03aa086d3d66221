# tests/stages/test_translate.py
from unittest.mock import MagicMock

from arcanelib.context.agent import NovelAgent
from arcanelib.context.glossary import CharacterEntry
from arcanelib.providers.base import Capability
from arcanelib.providers.models import Completion, JSONCompletion, TokenUsage
from arcanelib.providers.response_parser import InvalidJSONResponseError
from arcanelib.stages.models import StageType
from arcanelib.stages.translate import TranslateStage


def make_text_provider(*contents, raises=None):
    provider = MagicMock()
    provider.name       = "local"
    provider.capability = Capability.TEXT_ONLY
    if raises:
        provider.complete.side_effect = raises
    else:
        provider.complete.side_effect = [
            Completion(content=c, tokens_used=TokenUsage(50, 50)) for c in contents
        ]
    return provider


def make_json_provider(*payloads, text_fallback=None):
    provider = MagicMock()
    provider.name       = "gemini"
    provider.capability = Capability.JSON
    provider.complete_json.side_effect = [
        p if isinstance(p, Exception) else JSONCompletion(data=p, tokens_used=TokenUsage(40, 60))
        for p in payloads
    ]
    if text_fallback is not None:
        provider.complete.return_value = Completion(content=text_fallback, tokens_used=TokenUsage(10, 10))
    return provider


def make_context():
    agent = NovelAgent.create(1, "Novela")
    agent.glossary_manager.add_character(CharacterEntry("Lin Feng", "Линь Фэн"))
    return agent.get_context()


class TestTranslateStageTexto:

    def test_scenario_a_un_chunk(self):
        provider = make_text_provider("Привет.\n\nМир.")
        result   = TranslateStage(provider).execute("Hello.\n\nWorld.", make_context(), chunk_size=100)

        assert result.success
        assert result.stage is StageType.TRANSLATE
        assert result.data.translated_text == "Привет.\n\nМир."
        assert len(result.data.chunk_results) == 1
        assert result.data.paragraphs is None
        assert result.tokens_used == 100

    def test_chunks_en_orden(self):
        text     = "A" * 200 + "\n\n" + "B" * 200
        provider = make_text_provider("Уно", "Дос")
        result   = TranslateStage(provider).execute(text, make_context(), chunk_size=60)

        assert [r.index for r in result.data.chunk_results] == [0, 1]
        assert result.data.translated_text == "Уно\n\nДос"

    def test_error_de_un_chunk_deja_marca(self):
        text     = "A" * 200 + "\n\n" + "B" * 200
        provider = MagicMock()
        provider.capability = Capability.TEXT_ONLY
        provider.complete.side_effect = [
            ConnectionError("timeout"),
            Completion(content="Дос", tokens_used=TokenUsage(5, 5)),
        ]

        result = TranslateStage(provider).execute(text, make_context(), chunk_size=60)

        assert result.success
        assert result.data.chunk_results[0].translated == "[ERROR: timeout]"
        assert result.data.chunk_results[0].failed
        assert result.data.translated_text == "[ERROR: timeout]\n\nДос"

    def test_todos_los_chunks_fallan(self):
        text     = "A" * 200 + "\n\n" + "B" * 200
        provider = make_text_provider(raises=RuntimeError("network down"))

        result = TranslateStage(provider).execute(text, make_context(), chunk_size=60)

        assert not result.success
        assert result.error == "network down"
        assert result.data is None
        assert provider.complete.call_count == 2

    def test_todo_vacio_falla(self):
        provider = make_text_provider("   ")
        result   = TranslateStage(provider).execute("Hello.", make_context())

        assert not result.success
        assert result.error.startswith("Translation resulted in empty text")

    def test_prompt_incluye_glosario(self):
        provider = make_text_provider("Привет.")
        TranslateStage(provider).execute("Hello.", make_context())

        messages = provider.complete.call_args.args[0]
        assert "Lin Feng → Линь Фэн" in messages[-1].content

    def test_temperatura_configurable(self):
        provider = make_text_provider("Привет.")
        TranslateStage(provider, temperature=0.2).execute("Hello.", make_context())
        assert provider.complete.call_args.args[1].temperature == 0.2


class TestTranslateStageJson:

    def test_parrafos_estructurados_con_marcadores(self):
        provider = make_json_provider({"paragraphs": [
            {"id": "--para:p0--", "translated": "Привет."},
            {"id": "--para:p1--", "translated": "Мир."},
        ]})
        source = "--para:p0--Hello.\n\n--para:p1--World."

        result = TranslateStage(provider).execute(source, make_context())

        draft = result.data
        assert [(p.id, p.translated) for p in draft.paragraphs] == [("p0", "Привет."), ("p1", "Мир.")]
        assert draft.translated_text == "--para:p0--Привет.\n\n--para:p1--Мир."
        provider.complete.assert_not_called()

    def test_sin_marcadores_texto_limpio(self):
        provider = make_json_provider({"paragraphs": [
            {"id": "1", "translated": "Привет."},
            {"id": "2", "translated": "Мир."},
        ]})
        result = TranslateStage(provider).execute("Hello.\n\nWorld.", make_context())
        assert result.data.translated_text == "Привет.\n\nМир."

    def test_ids_auto_se_excluyen(self):
        provider = make_json_provider({"paragraphs": [
            {"id": "--para:p0--", "translated": "Привет."},
            {"id": "--para:auto_1--", "translated": "Новое."},
        ]})
        source = "--para:p0--Hello.\n\n--para:auto_1--New."

        result = TranslateStage(provider).execute(source, make_context())

        assert [p.id for p in result.data.paragraphs] == ["p0"]

    def test_json_invalido_cae_a_texto(self):
        provider = make_json_provider(
            InvalidJSONResponseError("sin JSON"),
            text_fallback="--para:p0--Привет.",
        )
        result = TranslateStage(provider).execute("--para:p0--Hello.", make_context())

        assert result.success
        assert result.data.translated_text == "--para:p0--Привет."
        assert result.data.paragraphs is None
        provider.complete.assert_called_once()

    def test_json_sin_paragraphs_cae_a_texto(self):
        provider = make_json_provider({"translation": "Привет."}, text_fallback="Привет.")
        result   = TranslateStage(provider).execute("Hello.", make_context())
        assert result.data.translated_text == "Привет."

    def test_solapamiento_como_contexto_previo(self):
        sentences = " ".join(f"Sentence number {i} is here." for i in range(20))
        provider  = make_json_provider(*[
            {"paragraphs": [{"id": str(i), "translated": f"Фраза {i}."}]} for i in range(20)
        ])

        TranslateStage(provider).execute(sentences, make_context(), chunk_size=30)

        second_prompt = provider.complete_json.call_args_list[1].args[0][-1].content
        assert "Contexto previo (NO traducir)" in second_prompt
