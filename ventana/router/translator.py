# router/translator.py
import asyncio

from ventana.router.prompt_builder import build_translate_prompt
from ventana.router.router import Router
from ventana.scheduler.contracts import TranslationResult, Translator


class RouterTranslator(Translator):
    """
    Adapta el Router síncrono al contrato async del Dispatcher.
    La llamada al SDK corre en un thread para no bloquear el event loop.
    """

    def __init__(self, router: Router, source_language: str = "auto"):
        self._router          = router
        self._source_language = source_language
        self._prompts: dict[str, str] = {}

    async def translate(self, text: str, target_language: str) -> TranslationResult:
        system_prompt = self._prompt_for(target_language)
        response = await asyncio.to_thread(self._router.translate, text, system_prompt)
        return TranslationResult(
            translated_text = response.translation,
            tokens_used     = response.tokens_total,
        )

    def _prompt_for(self, target_language: str) -> str:
        if target_language not in self._prompts:
            self._prompts[target_language] = build_translate_prompt(
                target_lang = target_language,
                source_lang = self._source_language,
            )
        return self._prompts[target_language]
