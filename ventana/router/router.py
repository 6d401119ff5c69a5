# router/router.py
import logging

from ventana.router.base import BaseModel
from ventana.router.models import ModelResponse

logger = logging.getLogger(__name__)


class AllModelsExhaustedError(Exception):
    """Ningún proveedor tiene quota o está fuera de cooldown."""
    pass


class Router:
    """
    Elige proveedor en cada llamada, por prioridad.

    - Salta los que no están disponibles (quota diaria o cooldown)
    - Hace failover ante errores de red o rate limit del proveedor
    - Propaga los errores de contenido: fallarían igual en cualquier modelo
    """

    def __init__(self, models: list[BaseModel]):
        if not models:
            raise ValueError("El Router necesita al menos un modelo")
        self._models = models

    def translate(self, text: str, system_prompt: str) -> ModelResponse:
        last_error: Exception | None = None

        for model in self._models:
            if not model.is_available():
                logger.info("Modelo %s sin quota o en cooldown, saltando", model.name)
                continue

            try:
                response = model.translate(text, system_prompt)
            except Exception as e:
                if _is_content_error(e):
                    logger.error("Error de contenido en %s, sin failover: %s", model.name, e)
                    raise
                logger.warning("Modelo %s falló (%s), pasando al siguiente", model.name, e)
                last_error = e
                continue

            logger.debug(
                "Traducido con %s | tokens: %d+%d",
                model.name, response.tokens_input, response.tokens_output,
            )
            return response

        raise AllModelsExhaustedError(
            f"Ningún modelo disponible. Último error: {last_error}"
        )

    def available_models(self) -> list[str]:
        return [m.name for m in self._models if m.is_available()]


def _is_content_error(e: Exception) -> bool:
    import anthropic
    import google.api_core.exceptions as google_ex

    return isinstance(e, (
        anthropic.BadRequestError,
        google_ex.InvalidArgument,
        ValueError,
    ))
