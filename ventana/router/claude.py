# router/claude.py
import logging
from typing import TYPE_CHECKING

import anthropic

from ventana.router.base import BaseModel
from ventana.router.models import ModelConfig, ModelResponse
from ventana.router.response_parser import parse_translation

if TYPE_CHECKING:
    from ventana.storage.repository import Repository

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "claude-haiku-4-5-20251001"

# Errores que sacan a Claude de rotación y activan failover
_RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
)


class ClaudeAdapter(BaseModel):

    def __init__(self, config: ModelConfig, repo: "Repository"):
        self._config = config
        self._repo   = repo
        self._client = anthropic.Anthropic(
            api_key = config.api_key,
            timeout = config.timeout_seconds,
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
        try:
            response = self._client.messages.create(
                model       = self._config.model_id or _DEFAULT_MODEL,
                max_tokens  = 4096,
                temperature = self._config.temperature,
                system      = system_prompt,
                messages    = [{"role": "user", "content": text}],
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Claude no disponible temporalmente: %s", e)
            self._start_cooldown()
            raise

        except anthropic.BadRequestError as e:
            # Problema del propio texto (contenido bloqueado, etc.)
            logger.error("Claude rechazó el texto: %s", e)
            raise

        raw_text      = response.content[0].text
        tokens_input  = response.usage.input_tokens
        tokens_output = response.usage.output_tokens

        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            translation   = parse_translation(raw_text, self.name),
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
