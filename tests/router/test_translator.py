# tests/router/test_translator.py
from unittest.mock import MagicMock

import pytest

from ventana.router.models import ModelResponse
from ventana.router.router import AllModelsExhaustedError
from ventana.router.translator import RouterTranslator


def make_router(response=None, raises=None):
    router = MagicMock()
    if raises:
        router.translate.side_effect = raises
    else:
        router.translate.return_value = response
    return router


class TestRouterTranslator:

    @pytest.mark.asyncio
    async def test_devuelve_traduccion_y_tokens(self):
        router = make_router(ModelResponse("你好", "gemini", tokens_input=10, tokens_output=5))
        translator = RouterTranslator(router, source_language="en")

        result = await translator.translate("Hello", "zh-TW")

        assert result.translated_text == "你好"
        assert result.tokens_used == 15
        text, prompt = router.translate.call_args.args
        assert text == "Hello"
        assert "chino tradicional (zh-TW)" in prompt

    @pytest.mark.asyncio
    async def test_cachea_el_prompt_por_idioma(self):
        router = make_router(ModelResponse("x", "gemini", 1, 1))
        translator = RouterTranslator(router)

        await translator.translate("a", "es")
        await translator.translate("b", "es")

        first  = router.translate.call_args_list[0].args[1]
        second = router.translate.call_args_list[1].args[1]
        assert first is second

    @pytest.mark.asyncio
    async def test_propaga_errores_del_router(self):
        translator = RouterTranslator(make_router(raises=AllModelsExhaustedError("sin quota")))

        with pytest.raises(AllModelsExhaustedError):
            await translator.translate("a", "es")
