# router/gemini.py
import logging
from typing import TYPE_CHECKING

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ventana.router.base import BaseModel
from ventana.router.models import ModelConfig, ModelResponse
from ventana.router.response_parser import parse_translation

if TYPE_CHECKING:
    from ventana.storage.repository import Repository

logger = logging.getLogger(__name__)

# Los límites por defecto del scheduler (15 RPM) son los de este modelo
_DEFAULT_MODEL = "gemini-2.5-flash-lite"

_RETRYABLE_ERRORS = (
    google_exceptions.ResourceExhausted,   # 429
    google_exceptions.DeadlineExceeded,
    google_exceptions.ServiceUnavailable,
)


class GeminiAdapter(BaseModel):

    def __init__(self, config: ModelConfig, repo: "Repository"):
        self._config = config
        self._repo   = repo
        genai.configure(api_key=config.api_key)
        self._model = genai.GenerativeModel(
            model_name        = config.model_id or _DEFAULT_MODEL,
            generation_config = genai.GenerationConfig(
                temperature        = config.temperature,
                response_mime_type = "application/json",
            ),
        )

    @property
    def name(self) -> str:
        return self._config.name

    def is_available(self) -> bool:
        if self._in_cooldown():
            return False
        used = self._repo.get_token_usage_today(self.name)
        return used < self._config.daily_token_limit

    def translate(self, text: str, system_prompt: str) -> ModelResponse:
        # Gemini no separa system/user en esta API: van en un solo prompt
        full_prompt = f"{system_prompt}\n\n{text}"

        try:
            response = self._model.generate_content(
                full_prompt,
                request_options={"timeout": self._config.timeout_seconds},
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Gemini no disponible temporalmente: %s", e)
            self._start_cooldown()
            raise

        tokens_input  = response.usage_metadata.prompt_token_count
        tokens_output = response.usage_metadata.candidates_token_count

        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            translation   = parse_translation(response.text, self.name),
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
