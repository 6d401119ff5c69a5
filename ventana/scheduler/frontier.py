# scheduler/frontier.py
import logging
import time
from typing import Callable, Optional

from ventana.scheduler.contracts import Renderer
from ventana.scheduler.models import Region

logger = logging.getLogger(__name__)


class FrontierTracker:
    """
    Cachea el punto más bajo del documento ya traducido (frontier_y)
    para no volver a escanear regiones traducidas en cada scroll.

    El valor se recalcula de forma perezosa preguntando al renderer;
    invalidate() lo descarta cuando el contenido traducido se limpia.
    """

    def __init__(
        self,
        renderer:     Renderer,
        clock:        Callable[[], float] = time.time,
        cache_ttl_ms: float = 1000,
    ):
        self._renderer     = renderer
        self._clock        = clock
        self._cache_ttl_ms = cache_ttl_ms

        self._frontier_y:  Optional[float] = None
        self._computed_at: Optional[float] = None

    def get_frontier(self, max_cache_age_ms: Optional[float] = None) -> Optional[float]:
        """
        Devuelve el frontier cacheado si es más joven que max_cache_age_ms
        (por defecto el TTL configurado); si no, lo recalcula.
        None = todavía no hay nada traducido.
        """
        max_age = self._cache_ttl_ms if max_cache_age_ms is None else max_cache_age_ms
        now = self._clock()

        if self._computed_at is not None and (now - self._computed_at) * 1000 < max_age:
            return self._frontier_y

        self._frontier_y  = self._renderer.lowest_translated_bottom_y()
        self._computed_at = now
        logger.debug("Frontier recalculado: %s", self._frontier_y)
        return self._frontier_y

    def invalidate(self) -> None:
        self._frontier_y  = None
        self._computed_at = None

    def get_pending_region(
        self,
        viewport_top:    float,
        viewport_bottom: float,
        margin:          float,
    ) -> Region:
        """
        Región para la que hay que pedir unidades nuevas:
        [max(frontier, viewport_top − margin), viewport_bottom + margin].
        El borde superior nunca baja de 0. Vacía si el frontier ya pasó el fondo.
        """
        top      = max(0.0, viewport_top - margin)
        frontier = self.get_frontier()
        if frontier is not None:
            top = max(frontier, top)
        return Region(top=top, bottom=viewport_bottom + margin)
