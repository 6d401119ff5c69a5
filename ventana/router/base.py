# router/base.py
import time
from abc import ABC, abstractmethod

from ventana.router.models import ModelConfig, ModelResponse

# Tras un error retryable el proveedor queda fuera de rotación este tiempo
COOLDOWN_SECONDS = 300


class BaseModel(ABC):
    """
    Contrato de los adaptadores de proveedor.
    El Router solo habla con esta interfaz; nadie más importa claude.py ni gemini.py.
    """

    _config: ModelConfig

    @abstractmethod
    def translate(self, text: str, system_prompt: str) -> ModelResponse:
        """
        Llamada síncrona al proveedor.
        Puede lanzar errores de red / rate limit (el Router hace failover)
        o errores de contenido (el Router los propaga).
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Sin latencia de red: cooldown + quota diaria en storage."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Debe coincidir con quota_usage.model."""
        ...

    def _in_cooldown(self) -> bool:
        until = self._config._unavailable_until
        if until is None:
            return False
        if time.time() < until:
            return True
        self._config._unavailable_until = None   # cooldown expirado
        return False

    def _start_cooldown(self) -> None:
        self._config._unavailable_until = time.time() + COOLDOWN_SECONDS
