# tests/context/test_glossary.py
from arcanelib.context.glossary import (
    CharacterEntry,
    Glossary,
    GlossaryManager,
    GlossaryUpdate,
    LocationEntry,
    TermEntry,
)


def make_manager() -> GlossaryManager:
    manager = GlossaryManager()
    manager.add_character(CharacterEntry(
        original_name   = "Lin Feng",
        translated_name = "Линь Фэн",
        gender          = "male",
        description     = "Protagonista",
        aliases         = ["Young Master Lin"],
        declensions     = {"genitive": "Линя Фэна"},
    ))
    manager.add_location(LocationEntry("Azure Cloud Sect", "Секта Лазурного Облака", type="building"))
    manager.add_term(TermEntry("Qi", "Ци", category="magic", description="energía vital"))
    return manager


class TestGlossaryManager:

    def test_alta_asigna_ids(self):
        manager = make_manager()
        glossary = manager.glossary
        assert glossary.characters[0].id.startswith("char_")
        assert glossary.locations[0].id.startswith("loc_")
        assert glossary.terms[0].id.startswith("term_")

    def test_duplicado_devuelve_el_existente(self):
        manager  = make_manager()
        existing = manager.glossary.characters[0]

        result = manager.add_character(CharacterEntry("lin feng", "Другой"))

        assert result is existing
        assert manager.character_count == 1

    def test_busqueda_por_alias_sin_mayusculas(self):
        manager = make_manager()
        assert manager.find_character("young master lin").translated_name == "Линь Фэн"
        assert manager.find_character("Desconocido") is None

    def test_busqueda_de_lugares_y_terminos(self):
        manager = make_manager()
        assert manager.find_location("azure cloud sect") is not None
        assert manager.find_term("QI").translated_term == "Ци"

    def test_version_aumenta_con_cada_alta(self):
        manager = GlossaryManager()
        assert manager.glossary.version == 1
        manager.add_term(TermEntry("Dao", "Дао"))
        manager.add_term(TermEntry("Dao", "Дао"))   # duplicado: no cuenta
        assert manager.glossary.version == 2

    def test_apply_update(self):
        manager = make_manager()
        manager.apply_update(GlossaryUpdate(
            new_characters = [CharacterEntry("Mei", "Мэй", gender="female")],
            new_locations  = [LocationEntry("Azure Cloud Sect", "Otra")],
            new_terms      = [TermEntry("Dantian", "Даньтянь")],
        ))
        assert manager.character_count == 2
        assert manager.location_count == 1
        assert manager.term_count == 2

    def test_update_vacio(self):
        assert GlossaryUpdate().is_empty()
        assert not GlossaryUpdate(new_terms=[TermEntry("a", "b")]).is_empty()


class TestPromptText:

    def test_glosario_vacio_da_cadena_vacia(self):
        assert GlossaryManager().to_prompt_text() == ""

    def test_formato_de_personajes(self):
        text = make_manager().to_prompt_text()
        assert "### Personajes (Characters)" in text
        assert (
            "- Lin Feng → Линь Фэн [male] (genitive: Линя Фэна) - Protagonista "
            "También: Young Master Lin"
        ) in text

    def test_formato_de_lugares_y_terminos(self):
        text = make_manager().to_prompt_text()
        assert "### Localizaciones (Locations)\n- Azure Cloud Sect → Секта Лазурного Облака" in text
        assert "### Términos (Terms)\n- Qi → Ци (energía vital)" in text


class TestSerializacion:

    def test_round_trip(self):
        glossary = make_manager().glossary
        restored = Glossary.from_dict(glossary.to_dict())
        assert restored == glossary

    def test_dict_vacio(self):
        glossary = Glossary.from_dict({})
        assert glossary.version == 1
        assert glossary.characters == []
