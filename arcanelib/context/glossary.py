# context/glossary.py
import uuid
from dataclasses import asdict, dataclass, field
from typing import Optional

from arcanelib.context.declension import decline_name


@dataclass
class CharacterEntry:
    original_name:     str
    translated_name:   str
    gender:            str            = "unknown"   # male | female | neutral | unknown
    description:       str            = ""
    aliases:           list[str]      = field(default_factory=list)
    first_appearance:  int            = 1
    is_main_character: bool           = False
    declensions:       dict[str, str] = field(default_factory=dict)
    id:                str            = ""


@dataclass
class LocationEntry:
    original_name:   str
    translated_name: str
    type:            str = "other"   # city | country | building | region | world | other
    description:     str = ""
    id:              str = ""


@dataclass
class TermEntry:
    original_term:   str
    translated_term: str
    category:        str           = "other"   # skill | magic | item | title | organization | race | other
    description:     str           = ""
    context:         Optional[str] = None
    id:              str           = ""


@dataclass
class Glossary:
    """Glosario completo de una novela. Vive dentro del estado del agente."""
    version:    int                  = 1
    characters: list[CharacterEntry] = field(default_factory=list)
    locations:  list[LocationEntry]  = field(default_factory=list)
    terms:      list[TermEntry]      = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Glossary":
        return cls(
            version    = data.get("version", 1),
            characters = [CharacterEntry(**c) for c in data.get("characters", [])],
            locations  = [LocationEntry(**l) for l in data.get("locations", [])],
            terms      = [TermEntry(**t) for t in data.get("terms", [])],
        )


@dataclass
class GlossaryUpdate:
    """
    Entradas nuevas propuestas por el análisis de un capítulo.
    Solo contiene lo nuevo, no el glosario completo.
    """
    new_characters: list[CharacterEntry] = field(default_factory=list)
    new_locations:  list[LocationEntry]  = field(default_factory=list)
    new_terms:      list[TermEntry]      = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.new_characters or self.new_locations or self.new_terms)


class GlossaryManager:
    """
    Opera sobre un Glossary: alta de entradas sin duplicados,
    búsquedas por nombre original y volcado a texto para los prompts.
    """

    def __init__(self, glossary: Optional[Glossary] = None, target_language: Optional[str] = None):
        self._glossary        = glossary if glossary is not None else Glossary()
        self._target_language = target_language

    @property
    def glossary(self) -> Glossary:
        return self._glossary

    # ------------------------------------------------------------------
    # Personajes
    # ------------------------------------------------------------------

    def add_character(self, entry: CharacterEntry) -> CharacterEntry:
        existing = self.find_character(entry.original_name)
        if existing:
            return existing

        if not entry.declensions:
            entry.declensions = decline_name(entry.translated_name, entry.gender, self._target_language)
        if not entry.id:
            entry.id = _generate_id("char")
        self._glossary.characters.append(entry)
        self._touch()
        return entry

    def find_character(self, name: str) -> Optional[CharacterEntry]:
        """Busca por nombre original o por alias, sin distinguir mayúsculas."""
        key = name.lower()
        for char in self._glossary.characters:
            if char.original_name.lower() == key:
                return char
            if any(a.lower() == key for a in char.aliases):
                return char
        return None

    # ------------------------------------------------------------------
    # Localizaciones y términos
    # ------------------------------------------------------------------

    def add_location(self, entry: LocationEntry) -> LocationEntry:
        existing = self.find_location(entry.original_name)
        if existing:
            return existing

        if not entry.id:
            entry.id = _generate_id("loc")
        self._glossary.locations.append(entry)
        self._touch()
        return entry

    def find_location(self, name: str) -> Optional[LocationEntry]:
        key = name.lower()
        return next(
            (l for l in self._glossary.locations if l.original_name.lower() == key),
            None,
        )

    def add_term(self, entry: TermEntry) -> TermEntry:
        existing = self.find_term(entry.original_term)
        if existing:
            return existing

        if not entry.id:
            entry.id = _generate_id("term")
        self._glossary.terms.append(entry)
        self._touch()
        return entry

    def find_term(self, term: str) -> Optional[TermEntry]:
        key = term.lower()
        return next(
            (t for t in self._glossary.terms if t.original_term.lower() == key),
            None,
        )

    # ------------------------------------------------------------------
    # Operaciones en bloque
    # ------------------------------------------------------------------

    def apply_update(self, update: GlossaryUpdate) -> None:
        for char in update.new_characters:
            self.add_character(char)
        for loc in update.new_locations:
            self.add_location(loc)
        for term in update.new_terms:
            self.add_term(term)

    def to_prompt_text(self) -> str:
        """
        Texto del glosario tal como se inyecta en los prompts.
        Cadena vacía si el glosario no tiene entradas.
        """
        text = ""

        if self._glossary.characters:
            text += "### Personajes (Characters)\n"
            for char in self._glossary.characters:
                text += f"- {char.original_name} → {char.translated_name} [{char.gender}]"
                if char.declensions:
                    forms = ", ".join(f"{case}: {form}" for case, form in char.declensions.items())
                    text += f" ({forms})"
                if char.description:
                    text += f" - {char.description}"
                if char.aliases:
                    text += f" También: {', '.join(char.aliases)}"
                text += "\n"
            text += "\n"

        if self._glossary.locations:
            text += "### Localizaciones (Locations)\n"
            for loc in self._glossary.locations:
                text += f"- {loc.original_name} → {loc.translated_name}"
                if loc.description:
                    text += f" - {loc.description}"
                text += "\n"
            text += "\n"

        if self._glossary.terms:
            text += "### Términos (Terms)\n"
            for term in self._glossary.terms:
                text += f"- {term.original_term} → {term.translated_term}"
                if term.description:
                    text += f" ({term.description})"
                text += "\n"

        return text

    # ------------------------------------------------------------------
    # Contadores
    # ------------------------------------------------------------------

    @property
    def character_count(self) -> int:
        return len(self._glossary.characters)

    @property
    def location_count(self) -> int:
        return len(self._glossary.locations)

    @property
    def term_count(self) -> int:
        return len(self._glossary.terms)

    def _touch(self) -> None:
        self._glossary.version += 1


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:9]}"
