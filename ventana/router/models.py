# router/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ModelResponse:
    translation:   str
    model_used:    str
    tokens_input:  int
    tokens_output: int

    @property
    def tokens_total(self) -> int:
        return self.tokens_input + self.tokens_output


@dataclass
class ModelConfig:
    """
    Configuración de un proveedor individual.
    Se carga desde la sección models de ~/.ventana/config.yaml.
    """
    name:              str
    priority:          int
    daily_token_limit: int
    api_key:           Optional[str] = None
    model_id:          Optional[str] = None   # None → el default del adaptador
    timeout_seconds:   int = 60
    temperature:       float = 0.2

    # Cooldown tras error de red/rate limit (runtime, no viene del YAML)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )
