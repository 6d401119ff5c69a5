# ventana/orchestrator.py
import asyncio
import logging
import math
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from ventana.renderer import DocumentRenderer
from ventana.scheduler.contracts import Extractor
from ventana.scheduler.dispatcher import Dispatcher, DispatcherStatus
from ventana.scheduler.frontier import FrontierTracker
from ventana.scheduler.models import Region, ScheduleReport, TranslatableUnit
from ventana.scheduler.queue import TranslationQueue

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Resultado del pipeline
# ------------------------------------------------------------------

@dataclass
class PipelineResult:
    total:       int
    translated:  int
    failed:      int
    output_path: Optional[Path] = None

    @property
    def pending(self) -> int:
        return max(0, self.total - self.translated - self.failed)


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------

class Orchestrator:
    """
    Conecta extractor, cola, dispatcher y renderer.
    No tiene lógica de scheduling propia: decide qué unidades entran
    a la cola y cuándo arrancar el dispatcher.

    Dos modos:
    - documento completo: todo a la cola de una vez, orden por prioridad
    - viewport: en cada scroll (con throttle) solo la región pendiente
      entre el frontier y el fondo del viewport más el margen
    """

    def __init__(
        self,
        extractor:          Extractor,
        queue:              TranslationQueue,
        dispatcher:         Dispatcher,
        frontier:           Optional[FrontierTracker]  = None,
        renderer:           Optional[DocumentRenderer] = None,
        *,
        viewport_margin_px: float = 200,
        scroll_throttle_ms: float = 200,
        clock:              Callable[[], float] = time.time,
        sleep:              Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._extractor   = extractor
        self._queue       = queue
        self._dispatcher  = dispatcher
        self._renderer    = renderer
        self._frontier    = frontier or (FrontierTracker(renderer, clock=clock) if renderer else None)
        self._margin      = viewport_margin_px
        self._throttle_s  = scroll_throttle_ms / 1000
        self._clock       = clock
        self._sleep       = sleep

        self._last_scan_at:  Optional[float] = None
        self._last_viewport: Optional[tuple[float, float]] = None
        self._trailing:      Optional[asyncio.Task] = None

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def renderer(self) -> Optional[DocumentRenderer]:
        return self._renderer

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, units: Iterable[TranslatableUnit]) -> ScheduleReport:
        """Encola cada unidad. Las inválidas o duplicadas cuentan como skipped."""
        total    = 0
        enqueued = 0
        for unit in units:
            total += 1
            if self._queue.enqueue(unit):
                enqueued += 1

        report = ScheduleReport(total=total, enqueued=enqueued, skipped=total - enqueued)
        logger.info(
            "Programadas %d unidades (%d nuevas, %d saltadas)",
            report.total, report.enqueued, report.skipped,
        )
        return report

    # ------------------------------------------------------------------
    # Modo documento completo
    # ------------------------------------------------------------------

    async def translate_document(self, output_filename: Optional[str] = None) -> PipelineResult:
        """
        Encola todas las unidades del documento y espera a que la cola se vacíe.
        Si hay renderer y output_filename, escribe el documento final.
        """
        units  = self._extractor.get_candidate_units()
        report = self.schedule(units)

        if self._dispatcher.start() is not None:
            await self._dispatcher.join()

        return self._result(units, report.total, output_filename)

    # ------------------------------------------------------------------
    # Modo viewport
    # ------------------------------------------------------------------

    async def on_viewport_change(self, top: float, bottom: float) -> Optional[ScheduleReport]:
        """
        Throttle con llamada inicial y final: el primer evento de una ráfaga
        se procesa al momento, los siguientes se agrupan en un único escaneo
        al final de la ventana con el último viewport recibido.
        Devuelve None cuando el escaneo queda diferido.
        """
        self._last_viewport = (top, bottom)
        now = self._clock()

        elapsed = math.inf if self._last_scan_at is None else now - self._last_scan_at
        if elapsed >= self._throttle_s:
            return self._scan(top, bottom)

        if self._trailing is None or self._trailing.done():
            delay = self._throttle_s - elapsed
            self._trailing = asyncio.get_running_loop().create_task(self._trailing_scan(delay))
        return None

    async def read_through(self, viewport_height_px: float, step_px: Optional[float] = None) -> PipelineResult:
        """
        Simula una lectura de principio a fin: desplaza el viewport de step_px
        en step_px y espera en cada posición a que lo visible esté traducido.
        """
        if viewport_height_px <= 0:
            raise ValueError("viewport_height_px debe ser positivo")

        step   = step_px or viewport_height_px
        units  = self._extractor.get_candidate_units()
        height = max((u.bottom_y or 0.0 for u in units), default=0.0)

        top = 0.0
        while True:
            await self.on_viewport_change(top, top + viewport_height_px)
            await self.join()
            if top + viewport_height_px >= height:
                break
            top += step

        return self._result(units, len(units), None)

    async def retry_failed(self) -> ScheduleReport:
        """
        Vuelve a encolar las unidades marcadas como fallidas en el renderer.
        Es la única vía de reintento: el dispatcher y los escaneos nunca reintentan.
        """
        if self._renderer is None:
            return ScheduleReport(total=0, enqueued=0, skipped=0)

        failed = [
            u for u in self._extractor.get_candidate_units()
            if self._renderer.translation_for(u) is None and self._renderer.error_for(u) is not None
        ]
        for unit in failed:
            self._renderer.discard_error(unit)

        report = self.schedule(failed)
        if report.enqueued:
            self._dispatcher.start()
        logger.info("Reintentando %d unidades fallidas", report.enqueued)
        return report

    async def join(self) -> None:
        """Espera al escaneo diferido pendiente y a que el dispatcher quede libre."""
        if self._trailing is not None and not self._trailing.done():
            await self._trailing
        await self._dispatcher.join()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def clear(self) -> None:
        if self._trailing is not None and not self._trailing.done():
            self._trailing.cancel()
        self._trailing      = None
        self._last_scan_at  = None
        self._last_viewport = None

        self._dispatcher.clear()
        if self._frontier is not None:
            self._frontier.invalidate()
        if self._renderer is not None:
            self._renderer.clear()
        logger.info("Orchestrator limpiado")

    def status(self) -> DispatcherStatus:
        return self._dispatcher.status()

    def build_output(self, output_filename: str) -> Path:
        if self._renderer is None:
            raise RuntimeError("Sin renderer no hay documento que escribir")
        return self._renderer.build(self._extractor.get_candidate_units(), output_filename)

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _trailing_scan(self, delay: float) -> None:
        await self._sleep(delay)
        if self._last_viewport is None:
            return
        top, bottom = self._last_viewport
        try:
            self._scan(top, bottom)
        except Exception:
            logger.exception("Escaneo diferido del viewport falló")

    def _scan(self, top: float, bottom: float) -> ScheduleReport:
        self._last_scan_at = self._clock()

        if self._frontier is not None:
            region = self._frontier.get_pending_region(top, bottom, self._margin)
        else:
            region = Region(top=max(0.0, top - self._margin), bottom=bottom + self._margin)

        if region.is_empty:
            logger.debug("Región [%.0f, %.0f] ya traducida", top, bottom)
            return ScheduleReport(total=0, enqueued=0, skipped=0)

        viewport   = Region(top=top, bottom=bottom)
        found      = self._extractor.get_candidate_units(region)
        # El frontier cacheado puede ir por detrás de lo ya pintado.
        # Las fallidas solo vuelven a la cola con retry_failed()
        candidates = [
            replace(unit, visible=viewport.overlaps(unit.top_y, unit.bottom_y))
            for unit in found
            if not self._already_handled(unit)
        ]
        logger.debug(
            "Viewport [%.0f, %.0f] → región [%.0f, %.0f], %d candidatas",
            top, bottom, region.top, region.bottom, len(candidates),
        )

        report = self.schedule(candidates)
        if report.enqueued:
            self._dispatcher.start()
        return ScheduleReport(
            total    = len(found),
            enqueued = report.enqueued,
            skipped  = len(found) - report.enqueued,
        )

    def _already_handled(self, unit: TranslatableUnit) -> bool:
        if self._renderer is None:
            return False
        return (
            self._renderer.translation_for(unit) is not None
            or self._renderer.error_for(unit) is not None
        )

    def _result(
        self,
        units:           list[TranslatableUnit],
        total:           int,
        output_filename: Optional[str],
    ) -> PipelineResult:
        if self._renderer is not None:
            translated = sum(1 for u in units if self._renderer.translation_for(u) is not None)
            failed     = sum(
                1 for u in units
                if self._renderer.translation_for(u) is None and self._renderer.error_for(u) is not None
            )
        else:
            status     = self._dispatcher.status()
            translated = status.completed
            failed     = status.failed

        output_path = None
        if self._renderer is not None and output_filename:
            output_path = self._renderer.build(units, output_filename)

        return PipelineResult(
            total       = total,
            translated  = translated,
            failed      = failed,
            output_path = output_path,
        )
