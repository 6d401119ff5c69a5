# tests/router/test_router.py
from unittest.mock import MagicMock

import anthropic
import pytest

from ventana.router.models import ModelResponse
from ventana.router.router import AllModelsExhaustedError, Router


def make_model(name: str, available: bool, response=None, raises=None):
    model = MagicMock()
    model.name = name
    model.is_available.return_value = available
    if raises:
        model.translate.side_effect = raises
    elif response:
        model.translate.return_value = response
    return model


def sample_response(model_name: str) -> ModelResponse:
    return ModelResponse(
        translation   = "Texto traducido",
        model_used    = model_name,
        tokens_input  = 100,
        tokens_output = 150,
    )


class TestRouter:

    def test_usa_primer_modelo_disponible(self):
        m1 = make_model("gemini", available=True, response=sample_response("gemini"))
        m2 = make_model("claude", available=True, response=sample_response("claude"))
        router = Router([m1, m2])

        result = router.translate("segmento", "system_prompt")

        assert result.model_used == "gemini"
        m2.translate.assert_not_called()

    def test_salta_modelo_no_disponible(self):
        m1 = make_model("gemini", available=False)
        m2 = make_model("claude", available=True, response=sample_response("claude"))
        router = Router([m1, m2])

        result = router.translate("segmento", "system_prompt")

        assert result.model_used == "claude"
        m1.translate.assert_not_called()

    def test_failover_por_error_de_red(self):
        m1 = make_model("gemini", available=True, raises=ConnectionError("timeout"))
        m2 = make_model("claude", available=True, response=sample_response("claude"))
        router = Router([m1, m2])

        assert router.translate("segmento", "system_prompt").model_used == "claude"

    def test_todos_no_disponibles_lanza_error(self):
        router = Router([
            make_model("gemini", available=False),
            make_model("claude", available=False),
        ])

        with pytest.raises(AllModelsExhaustedError):
            router.translate("segmento", "system_prompt")

    def test_todos_fallan_incluye_ultimo_error(self):
        router = Router([make_model("gemini", available=True, raises=ConnectionError("caído"))])

        with pytest.raises(AllModelsExhaustedError, match="caído"):
            router.translate("segmento", "system_prompt")

    def test_error_de_contenido_no_hace_failover(self):
        error = anthropic.BadRequestError(
            message  = "content policy",
            response = MagicMock(),
            body     = {},
        )
        m1 = make_model("claude", available=True, raises=error)
        m2 = make_model("gemini", available=True, response=sample_response("gemini"))
        router = Router([m1, m2])

        with pytest.raises(anthropic.BadRequestError):
            router.translate("segmento", "system_prompt")

        m2.translate.assert_not_called()

    def test_router_sin_modelos_lanza_error(self):
        with pytest.raises(ValueError):
            Router([])

    def test_available_models_lista_correcta(self):
        router = Router([
            make_model("gemini", available=True),
            make_model("claude", available=False),
        ])
        assert router.available_models() == ["gemini"]

    def test_tokens_total(self):
        assert sample_response("x").tokens_total == 250
