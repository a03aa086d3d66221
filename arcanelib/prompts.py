# arcanelib/prompts.py
from typing import Optional


_ANALYZER_SYSTEM = """\
    Eres un analista literario experto que prepara novelas para su traducción.

    Extrae SOLO los elementos únicos, importantes y recurrentes que exigen
    una traducción consistente entre capítulos:
    1. Personajes: nombres propios de personas o seres conscientes
    2. Localizaciones: lugares con nombre propio del mundo de la obra
    3. Términos especiales: habilidades, sistemas de magia, títulos,
       organizaciones, objetos únicos
    4. Estilo: voz narrativa, tono, rasgos de los diálogos

    --- QUÉ NO EXTRAER ---
    - Lugares genéricos: "camino de tierra", "bosque", "posada", "río"
    - Vocabulario común: "espada", "libro", "traición", "honor"
    - Elementos que aparecen una sola vez y no son relevantes para la trama
    Si dudas, NO lo incluyas. Pocas entradas de calidad valen más que muchas genéricas.

    --- FORMATO DE SALIDA (ESTRICTO) ---
    Devuelve EXACTAMENTE 1 objeto JSON válido y nada más:
    {{
      "characters": [
        {{"name": "nombre original", "suggestedTranslation": "traducción sugerida",
          "gender": "male|female|neutral|unknown",
          "role": "protagonist|antagonist|supporting|minor",
          "description": "descripción breve", "context": "contexto de aparición"}}
      ],
      "locations": [
        {{"name": "nombre original", "suggestedTranslation": "traducción sugerida",
          "type": "city|country|building|region|world|other", "description": "..."}}
      ],
      "terms": [
        {{"term": "término original", "suggestedTranslation": "traducción sugerida",
          "category": "skill|magic|item|title|organization|race|other", "description": "..."}}
      ],
      "chapterSummary": "resumen de 2-3 frases",
      "keyEvents": ["evento 1", "evento 2"],
      "mood": "atmósfera del capítulo",
      "styleNotes": "rasgos de estilo destacables"
    }}
    """

_TRANSLATOR_SYSTEM = """\
    Eres un traductor literario experto en novelas.
    Traduces de {source_lang} a {target_lang}.

    Tu traducción debe:
    1. Preservar el sentido: intención y matices del original
    2. Mantener la consistencia: usa el glosario para todos los nombres y términos
    3. Respetar el estilo: la voz y el tono del autor
    4. Sonar natural: debe leerse como literatura nativa

    --- RESTRICCIONES CRÍTICAS ---
    - Usa EXACTAMENTE las traducciones del glosario, con la forma gramatical correcta.
    - No omitas, resumas ni agregues contenido narrativo.
    - Conserva los saltos de párrafo.
    - El bloque "Contexto previo" solo orienta: NO lo traduzcas.

    --- FORMATO DE SALIDA (ESTRICTO) ---
    Devuelve EXACTAMENTE 1 objeto JSON válido y nada más:
    {{
      "paragraphs": [
        {{"id": "--para:abc123--", "translated": "Traducción del primer párrafo."}},
        {{"id": "--para:def456--", "translated": "Traducción del segundo párrafo."}}
      ]
    }}

    Reglas del JSON:
    - Cada marcador del original (formato --para:{{id}}--) aparece exactamente una vez.
    - "id" copia el marcador tal cual; "translated" contiene SOLO el texto traducido, sin marcador.
    - Si el texto no tiene marcadores, devuelve un único elemento con "id": "auto_0".
    """

_TRANSLATOR_TEXT_FALLBACK = """\
    Si no puedes producir JSON, devuelve solo la traducción como texto plano,
    conservando cada marcador --para:{{id}}-- al inicio de su párrafo.
    """

_EDITOR_SYSTEM = """\
    Eres un editor literario experto en ficción traducida al {target_lang}.

    Pule la traducción para lograr:
    1. Fluidez natural en {target_lang}
    2. Calidad literaria preservando la voz original
    3. Consistencia de términos y estilo
    4. Legibilidad: corrige construcciones forzadas o calcos

    --- EVITA LAS REPETICIONES LÉXICAS ---
    Repetir la misma palabra o raíz en dos o tres frases seguidas es un error de estilo.
    Sustituye por sinónimos o reformula; conserva una aparición si aporta precisión.

    --- NO HAGAS ---
    - Añadir contenido o adornos excesivos
    - Eliminar detalles importantes
    - Cambiar nombres o términos fijados en el glosario
    - Alterar la trama o las acciones de los personajes

    --- FORMATO DE SALIDA ---
    Devuelve solo el texto final pulido, con el mismo formato de párrafos.
    Si un párrafo empieza con un marcador --para:{{id}}--, consérvalo intacto al inicio.
    No incluyas notas de edición.
    """

_QUALITY_SYSTEM = """\
    Revisa la traducción al {target_lang} y puntúa su calidad de 1 a 10.

    Evalúa:
    - Exactitud: ¿transmite el sentido del original?
    - Fluidez: ¿se lee con naturalidad?
    - Consistencia: ¿se usan los términos de forma uniforme?
    - Estilo: ¿respeta el tono original?
    - Variedad léxica: sin repeticiones de palabra o raíz dentro del párrafo

    Devuelve EXACTAMENTE 1 objeto JSON válido:
    {{
      "score": 8,
      "issues": ["problema 1", "problema 2"],
      "suggestions": ["sugerencia 1"]
    }}
    """

# Fallbacks — nunca dejan secciones vacías en el prompt
_GLOSSARY_EMPTY = "Sin glosario todavía."


def build_analyzer_system() -> str:
    return _ANALYZER_SYSTEM.format()


def build_analyzer_prompt(
    source_text:       str,
    source_lang:       str,
    target_lang:       str,
    existing_glossary: Optional[str] = None,
) -> str:
    prompt = f"Analiza el siguiente texto en {source_lang} para su traducción al {target_lang}.\n\n"

    if existing_glossary:
        prompt += f"## Glosario existente (referencia)\n{existing_glossary}\n\n"
        prompt += "Incluye solo personajes y términos NUEVOS que no estén en el glosario.\n\n"

    prompt += f"## Texto original\n\n{source_text}\n\n"
    prompt += "Entrega el análisis en el formato JSON indicado."
    return prompt


def build_translator_system(source_lang: str, target_lang: str, json_output: bool = True) -> str:
    """
    Instrucciones de sistema para la etapa de traducción.
    En modo texto se añade la instrucción de conservar los marcadores.
    """
    system = _TRANSLATOR_SYSTEM.format(source_lang=source_lang, target_lang=target_lang)
    if not json_output:
        system += _TRANSLATOR_TEXT_FALLBACK.format()
    return system


def build_translator_prompt(
    source_text: str,
    glossary:    str,
    context:     str,
    style_guide: str,
    overlap:     str = "",
) -> str:
    prompt = ""

    if context:
        prompt += f"## Contexto de capítulos anteriores\n{context}\n\n"

    prompt += f"## Glosario (USA ESTAS TRADUCCIONES)\n{glossary or _GLOSSARY_EMPTY}\n\n"

    if style_guide:
        prompt += f"## Guía de estilo\n{style_guide}\n\n"

    if overlap:
        prompt += f"## Contexto previo (NO traducir)\n{overlap}\n\n"

    prompt += f"## Texto a traducir\n\n{source_text}\n\n"
    prompt += "Traduce el texto anterior siguiendo todas las pautas."
    return prompt


def build_editor_system(target_lang: str) -> str:
    return _EDITOR_SYSTEM.format(target_lang=target_lang)


def build_editor_prompt(
    translated_text: str,
    original_text:   str,
    glossary:        str,
    style_notes:     Optional[str] = None,
) -> str:
    prompt = f"## Glosario de referencia (no cambies estos términos)\n{glossary or _GLOSSARY_EMPTY}\n\n"

    if style_notes:
        prompt += f"## Notas de estilo\n{style_notes}\n\n"

    prompt += f"## Texto original (referencia)\n{original_text}\n\n"
    prompt += f"## Traducción a editar\n{translated_text}\n\n"
    prompt += "Edita y pule esta traducción. Devuelve solo el texto final."
    return prompt


def build_quality_system(target_lang: str) -> str:
    return _QUALITY_SYSTEM.format(target_lang=target_lang)


def build_quality_prompt(translated_text: str, original_text: str, glossary: str) -> str:
    return (
        f"## Original\n{original_text}\n\n"
        f"## Traducción\n{translated_text}\n\n"
        f"## Glosario\n{glossary or _GLOSSARY_EMPTY}"
    )
