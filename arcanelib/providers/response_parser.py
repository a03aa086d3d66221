# providers/response_parser.py
import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# Captura JSON dentro de bloques ```json ... ``` o ``` ... ```
_MARKDOWN_JSON_RE = re.compile(
    r"```(?:json)?\s*(\{.*?\})\s*```",
    re.DOTALL,
)

# Captura el primer objeto JSON que aparezca en el texto
_BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)

# Objeto JSON con la clave "paragraphs" embebido en texto libre
_PARAGRAPHS_JSON_RE = re.compile(r'\{[\s\S]*"paragraphs"[\s\S]*\}')


class InvalidJSONResponseError(Exception):
    """La respuesta del modelo no contiene ningún objeto JSON parseable."""
    pass


def parse_json_object(raw_text: str, provider_name: str) -> dict:
    """
    Intenta parsear la respuesta del modelo con degradación progresiva.

    Estrategia:
    1. JSON directo (el camino feliz)
    2. JSON dentro de bloque markdown
    3. Primer objeto JSON en el texto libre

    Si nada funciona lanza InvalidJSONResponseError: quien llama decide
    el fallback (por ejemplo, pedir texto plano para ese chunk).
    """
    text = (raw_text or "").strip()

    # Intento 1: JSON directo
    result = _try_parse(text)
    if result is not None:
        return result

    # Intento 2: dentro de bloque markdown
    match = _MARKDOWN_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(1))
        if result is not None:
            logger.warning(
                "%s envolvió la respuesta en markdown — considera reforzar el prompt",
                provider_name,
            )
            return result

    # Intento 3: buscar cualquier objeto JSON en el texto
    match = _BARE_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(0))
        if result is not None:
            logger.warning("%s devolvió JSON con texto extra alrededor", provider_name)
            return result

    logger.error("%s devolvió una respuesta sin JSON parseable", provider_name)
    raise InvalidJSONResponseError(
        f"Respuesta no estructurada de {provider_name}: {text[:100]!r}"
    )


def find_paragraphs_payload(text: str) -> Optional[list[dict]]:
    """
    Busca un objeto {"paragraphs": [...]} embebido en el texto traducido.
    Devuelve la lista de párrafos o None si no hay uno válido.
    """
    match = _PARAGRAPHS_JSON_RE.search(text or "")
    if not match:
        return None

    data = _try_parse(match.group(0))
    if data is None:
        logger.info("JSON de párrafos detectado pero no parseable, se usa formato texto")
        return None

    paragraphs = data.get("paragraphs")
    if not isinstance(paragraphs, list):
        return None
    return [p for p in paragraphs if isinstance(p, dict)]


def _try_parse(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except (json.JSONDecodeError, ValueError):
        pass
    return None
