# scheduler/contracts.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ventana.scheduler.models import Region, TranslatableUnit


@dataclass(frozen=True)
class TranslationResult:
    translated_text: str
    tokens_used:     int = 0


class Translator(ABC):
    """
    Colaborador de traducción. El Dispatcher solo habla con esta interfaz.
    Puede lanzar cualquier excepción: el Dispatcher la registra como
    TranslationFailure de esa unidad y sigue con las demás.
    """

    @abstractmethod
    async def translate(self, text: str, target_language: str) -> TranslationResult:
        ...


class Renderer(ABC):
    """Muestra resultados y expone el borde inferior de lo ya traducido."""

    @abstractmethod
    def render(self, unit: TranslatableUnit, translated_text: str) -> None:
        ...

    @abstractmethod
    def render_error(self, unit: TranslatableUnit, message: str) -> None:
        ...

    @abstractmethod
    def lowest_translated_bottom_y(self) -> Optional[float]:
        """None si todavía no hay nada traducido."""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class Extractor(ABC):
    """Produce unidades candidatas, opcionalmente limitadas a una región."""

    @abstractmethod
    def get_candidate_units(self, region: Optional[Region] = None) -> list[TranslatableUnit]:
        ...
