# router/prompt_builder.py

_TRANSLATE_SYSTEM = """\
    Eres un traductor profesional de contenido web y documentos técnicos.
    Traduce el fragmento que recibas de forma natural y fiel.

    --- CONTEXTO ---
    - Idioma origen: {source_lang}
    - Idioma destino: {target_lang}

    --- RESTRICCIONES ---
    - Traduce solo el fragmento; no añadas explicaciones ni resúmenes.
    - Conserva la marca markdown (#, -, |, `) y los saltos de línea tal cual.
    - No traduzcas código, URLs ni nombres propios de productos.

    --- FORMATO DE SALIDA (ESTRICTO) ---
    Devuelve EXACTAMENTE 1 objeto JSON válido y nada más, sin markdown:
    {{"translation": "texto traducido"}}
    """

_LANGUAGE_NAMES = {
    "auto":  "detectar automáticamente",
    "en":    "inglés",
    "es":    "español",
    "fr":    "francés",
    "de":    "alemán",
    "ja":    "japonés",
    "ko":    "coreano",
    "pt":    "portugués",
    "zh":    "chino",
    "zh-cn": "chino simplificado",
    "zh-tw": "chino tradicional",
}


def build_translate_prompt(target_lang: str, source_lang: str = "auto") -> str:
    return _dedent(_TRANSLATE_SYSTEM.format(
        source_lang = describe_language(source_lang),
        target_lang = describe_language(target_lang),
    ))


def describe_language(code: str) -> str:
    """'zh-TW' → 'chino tradicional (zh-TW)'. Códigos desconocidos se devuelven tal cual."""
    name = _LANGUAGE_NAMES.get(code.strip().lower())
    if name is None or code.strip().lower() == "auto":
        return name or code
    return f"{name} ({code})"


def _dedent(text: str) -> str:
    return "\n".join(line.strip() for line in text.strip().splitlines())
