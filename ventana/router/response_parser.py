# router/response_parser.py
import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON_RE   = re.compile(r"\{.*\}", re.DOTALL)

# Claves alternativas que algunos modelos usan en lugar de "translation"
_TEXT_KEYS = ("translation", "translatedText", "translated_text", "text", "result")


def parse_translation(raw_text: str, model_name: str) -> str:
    """
    Extrae el texto traducido con degradación progresiva:
    JSON directo → JSON en bloque markdown → primer objeto JSON → texto crudo.

    Nunca lanza: en el peor caso la respuesta entera es la traducción.
    """
    text = raw_text.strip()

    found = _from_json(text)
    if found is not None:
        return found

    match = _FENCED_JSON_RE.search(text)
    if match:
        found = _from_json(match.group(1))
        if found is not None:
            logger.warning("%s envolvió el JSON en markdown", model_name)
            return found

    match = _BARE_JSON_RE.search(text)
    if match:
        found = _from_json(match.group(0))
        if found is not None:
            logger.warning("%s devolvió JSON con texto alrededor", model_name)
            return found

    logger.warning("%s devolvió texto no estructurado; se usa tal cual", model_name)
    return text


def _from_json(text: str) -> Optional[str]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    for key in _TEXT_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
