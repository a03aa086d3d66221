# tests/providers/test_response_parser.py
import pytest

from arcanelib.providers.response_parser import (
    InvalidJSONResponseError,
    find_paragraphs_payload,
    parse_json_object,
)


class TestParseJsonObject:

    def test_json_valido_directo(self):
        result = parse_json_object('{"score": 8, "issues": []}', "test_model")
        assert result == {"score": 8, "issues": []}

    def test_json_en_bloque_markdown(self):
        raw = '```json\n{"chapterSummary": "Resumen"}\n```'
        assert parse_json_object(raw, "test_model")["chapterSummary"] == "Resumen"

    def test_json_en_bloque_markdown_sin_lenguaje(self):
        raw = '```\n{"mood": "tenso"}\n```'
        assert parse_json_object(raw, "test_model")["mood"] == "tenso"

    def test_json_anidado_en_bloque_markdown(self):
        """El análisis devuelve objetos anidados: el regex no debe cortarlos."""
        raw = (
            "```json\n"
            '{"characters": [{"name": "Lin", "gender": "male"}], "extra": {"a": "b"}}\n'
            "```"
        )
        result = parse_json_object(raw, "test_model")
        assert result["characters"][0]["name"] == "Lin"
        assert result["extra"] == {"a": "b"}

    def test_json_con_texto_alrededor(self):
        raw = 'Aquí tienes el resultado: {"score": 9} Espero que sirva.'
        assert parse_json_object(raw, "test_model") == {"score": 9}

    def test_respuesta_sin_json_lanza_error(self):
        with pytest.raises(InvalidJSONResponseError):
            parse_json_object("Lo siento, no puedo ayudar con eso.", "test_model")

    def test_array_no_es_un_objeto(self):
        with pytest.raises(InvalidJSONResponseError):
            parse_json_object("[1, 2, 3]", "test_model")

    def test_respuesta_vacia_lanza_error(self):
        with pytest.raises(InvalidJSONResponseError):
            parse_json_object("", "test_model")


class TestFindParagraphsPayload:

    def test_payload_embebido_en_texto(self):
        text = 'Traducción:\n{"paragraphs": [{"id": "--para:a--", "translated": "Привет"}]}'
        assert find_paragraphs_payload(text) == [{"id": "--para:a--", "translated": "Привет"}]

    def test_descarta_elementos_que_no_son_objetos(self):
        text = '{"paragraphs": [{"id": "a", "translated": "x"}, "basura", 3]}'
        assert find_paragraphs_payload(text) == [{"id": "a", "translated": "x"}]

    def test_texto_sin_payload(self):
        assert find_paragraphs_payload("Привет.\n\nМир.") is None

    def test_paragraphs_que_no_es_lista(self):
        assert find_paragraphs_payload('{"paragraphs": "texto"}') is None

    def test_json_roto(self):
        assert find_paragraphs_payload('{"paragraphs": [{"id": "a",') is None
