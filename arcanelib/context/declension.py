# context/declension.py
"""
Formas de caso de los nombres de personaje en ruso.

Las declinaciones se calculan con Petrovich al dar de alta el personaje
y viajan en el glosario: el traductor recibe "Анна (genitive: Анны, ...)"
en lugar de tener que inferir cada caso por su cuenta.
"""
import re

from pytrovich.enums import Case, Gender, NamePart
from pytrovich.maker import PetrovichDeclinationMaker

_RUSSIAN = {"russian", "ru", "русский"}

_CYRILLIC_RE = re.compile(r"[а-яё]", re.IGNORECASE)

_CASES = {
    "genitive":      Case.GENITIVE,
    "dative":        Case.DATIVE,
    "accusative":    Case.ACCUSATIVE,
    "instrumental":  Case.INSTRUMENTAL,
    "prepositional": Case.PREPOSITIONAL,
}

_GENDERS = {
    "male":   Gender.MALE,
    "female": Gender.FEMALE,
}

_maker = PetrovichDeclinationMaker()


def supports_declension(target_language: str | None) -> bool:
    return (target_language or "").strip().lower() in _RUSSIAN


def decline_name(name: str, gender: str, target_language: str | None = "Russian") -> dict[str, str]:
    """
    nominative + los cinco casos oblicuos del nombre traducido.
    Vacío si el idioma destino no es ruso o el nombre no está en cirílico.
    Cada palabra del nombre se declina por separado ("Линь Фэн").
    """
    name = (name or "").strip()
    if not supports_declension(target_language) or not _CYRILLIC_RE.search(name):
        return {}

    petrovich_gender = _GENDERS.get(gender, Gender.ANDROGYNOUS)
    words            = name.split()

    forms = {"nominative": name}
    for case_name, case in _CASES.items():
        forms[case_name] = " ".join(
            _maker.make(NamePart.FIRSTNAME, petrovich_gender, case, word)
            for word in words
        )
    return forms
