# scheduler/ranker.py
from typing import Iterable, Optional

from ventana.scheduler.config import PriorityWeights
from ventana.scheduler.models import TranslatableUnit, UnitType

# Unidades con más palabras que esto se consideran importantes
_LONG_UNIT_WORDS = 20
# Más allá de esta posición el orden de documento ya no suma
_MAX_POSITION    = 1000


class PriorityRanker:
    """
    Asigna un score entero y determinista a cada unidad.

        score = w_viewport·visible + w_title·is_title + w_important·is_important
                + w_order·max(0, max_position − position)

    Mayor score = se despacha antes. Empates: posición ascendente.
    Función pura: no guarda estado entre llamadas.
    """

    def __init__(
        self,
        weights:         Optional[PriorityWeights] = None,
        long_unit_words: int = _LONG_UNIT_WORDS,
        max_position:    int = _MAX_POSITION,
    ):
        self._weights         = weights or PriorityWeights()
        self._long_unit_words = long_unit_words
        self._max_position    = max_position

    @property
    def weights(self) -> PriorityWeights:
        return self._weights

    def rank(self, unit: TranslatableUnit) -> int:
        w = self._weights
        score = 0

        if unit.visible:
            score += w.is_in_viewport
        if unit.type == UnitType.TITLE:
            score += w.is_title
        if self.is_important(unit):
            score += w.is_important

        # Sin posición → +∞ → el término de orden aporta 0
        if unit.document_position is not None:
            score += w.document_order * max(0, self._max_position - unit.document_position)

        return int(score)

    def is_important(self, unit: TranslatableUnit) -> bool:
        return (
            unit.type == UnitType.TITLE
            or unit.word_count > self._long_unit_words
            or unit.visible
        )

    def sort_key(self, unit: TranslatableUnit, score: Optional[int] = None) -> tuple:
        """Orden total: score descendente, posición ascendente."""
        if score is None:
            score = self.rank(unit)
        return (-score, unit.sort_position)

    def prioritize(self, units: Iterable[TranslatableUnit]) -> list[TranslatableUnit]:
        """Copia ordenada por prioridad. Útil para previsualizar el plan."""
        return sorted(units, key=self.sort_key)
