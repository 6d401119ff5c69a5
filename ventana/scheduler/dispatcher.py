# scheduler/dispatcher.py
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ventana.scheduler.contracts import Renderer, Translator
from ventana.scheduler.errors import QuotaExhausted, SchedulerError, TranslationFailure
from ventana.scheduler.models import Admission, Progress, QueueEntry, TranslatableUnit
from ventana.scheduler.queue import TranslationQueue
from ventana.scheduler.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ProgressListener = Callable[[Progress], None]
CompleteListener = Callable[[], None]
ErrorListener    = Callable[[SchedulerError, TranslatableUnit], None]
SleepFn          = Callable[[float], Awaitable[None]]


class DispatcherState(Enum):
    IDLE     = "idle"
    RUNNING  = "running"
    DRAINING = "draining"   # despachando un lote
    WAITING  = "waiting"    # entre lotes, esperando cuota o en pausa


@dataclass(frozen=True)
class DispatcherStatus:
    state:     DispatcherState
    paused:    bool
    pending:   int
    in_flight: int
    completed: int
    failed:    int


class Dispatcher:
    """
    Bucle cooperativo que alimenta al traductor respetando el rate limiter.

    Cada vuelta: saca un lote de la cola, admite entradas en orden de
    prioridad mientras el limiter lo permita, espera a que el lote termine
    y duerme el delay entre lotes. Nunca hay un bucle síncrono largo:
    todas las esperas son awaits.

    Garantías:
    - record() se llama sin ningún await entre él y su can_admit()
    - un fallo de una unidad no afecta a las demás
    - nunca reintenta solo: reintentar = volver a hacer enqueue
    - on_complete se emite una vez por ejecución
    """

    def __init__(
        self,
        queue:                   TranslationQueue,
        limiter:                 RateLimiter,
        translator:              Translator,
        target_language:         str,
        *,
        batch_size:              int   = 50,
        max_concurrent_requests: int   = 3,
        inter_batch_delay_ms:    float = 500,
        renderer:                Optional[Renderer] = None,
        on_progress:             Optional[ProgressListener] = None,
        on_complete:             Optional[CompleteListener] = None,
        on_error:                Optional[ErrorListener] = None,
        sleep:                   SleepFn = asyncio.sleep,
    ):
        if batch_size <= 0 or max_concurrent_requests <= 0:
            raise ValueError("batch_size y max_concurrent_requests deben ser positivos")

        self._queue           = queue
        self._limiter         = limiter
        self._translator      = translator
        self._target_language = target_language
        self._batch_size      = batch_size
        self._max_concurrent  = max_concurrent_requests
        self._inter_batch_s   = inter_batch_delay_ms / 1000
        self._renderer        = renderer
        self._sleep           = sleep

        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error    = on_error

        self._state       = DispatcherState.IDLE
        self._paused      = False
        self._generation  = 0
        self._task: Optional[asyncio.Task] = None
        self._in_flight:  set[asyncio.Task] = set()
        self._resume      = asyncio.Event()
        self._idle        = asyncio.Event()
        self._resume.set()
        self._idle.set()

        self._completed = 0
        self._failed    = 0

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def is_paused(self) -> bool:
        return self._paused

    def start(self) -> Optional[asyncio.Task]:
        """
        Idle → Running. Requiere un event loop corriendo.
        Si ya está corriendo devuelve la tarea actual; si la cola no tiene
        nada pendiente no arranca.
        """
        if self._state != DispatcherState.IDLE:
            logger.debug("Dispatcher ya en marcha (%s)", self._state.value)
            return self._task

        if self._queue.pending_count() == 0:
            logger.info("Cola vacía, nada que despachar")
            return None

        loop = asyncio.get_running_loop()

        self._state     = DispatcherState.RUNNING
        self._paused    = False
        self._completed = 0
        self._failed    = 0
        self._resume.set()
        self._idle.clear()

        logger.info("Dispatcher iniciado: %d unidades pendientes", self._queue.pending_count())
        self._task = loop.create_task(self._run(self._generation))
        return self._task

    def pause(self) -> bool:
        """Running → Waiting. Lo ya despachado termina; no se despacha nada nuevo."""
        if self._state == DispatcherState.IDLE or self._paused:
            return False
        self._paused = True
        self._resume.clear()
        self._state = DispatcherState.WAITING
        logger.info("Dispatcher pausado")
        return True

    def resume(self) -> bool:
        """Waiting → Running. Sin ejecución en marcha no hace nada."""
        if not self._paused or self._state == DispatcherState.IDLE:
            return False
        self._paused = False
        self._state  = DispatcherState.RUNNING
        self._resume.set()
        logger.info("Dispatcher reanudado")
        return True

    def clear(self) -> None:
        """
        Vacía la cola y vuelve a Idle. Las traducciones en vuelo no se cancelan
        (no hay canal para ello); sus resultados se descartan al llegar.
        """
        self._generation += 1
        discarded = len(self._in_flight)
        self._queue.clear()

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        self._paused = False
        self._resume.set()
        self._state = DispatcherState.IDLE
        self._idle.set()
        self._completed = 0
        self._failed    = 0
        logger.info("Dispatcher limpiado (%d traducciones en vuelo se descartarán)", discarded)

    async def join(self) -> None:
        """Espera a que la ejecución actual termine (o sea limpiada)."""
        await self._idle.wait()

    def status(self) -> DispatcherStatus:
        return DispatcherStatus(
            state     = self._state,
            paused    = self._paused,
            pending   = self._queue.pending_count(),
            in_flight = len(self._in_flight),
            completed = self._completed,
            failed    = self._failed,
        )

    # ------------------------------------------------------------------
    # Bucle
    # ------------------------------------------------------------------

    async def _run(self, generation: int) -> None:
        try:
            while self._is_current(generation):
                if self._paused:
                    await self._resume.wait()
                    continue

                batch = self._queue.dequeue_batch(self._batch_size)
                if not batch:
                    break

                self._state = DispatcherState.DRAINING
                blocked = await self._drain(batch, generation)
                if not self._is_current(generation):
                    return

                if blocked is None and self._queue.pending_count() == 0:
                    break

                if not self._paused:
                    self._state = DispatcherState.WAITING
                await self._sleep(self._next_delay(blocked))

                if self._is_current(generation) and not self._paused:
                    self._state = DispatcherState.RUNNING

        except asyncio.CancelledError:
            logger.debug("Bucle del dispatcher cancelado (generación %d)", generation)
            raise

        if self._is_current(generation):
            self._finish_run()

    async def _drain(self, batch: list[QueueEntry], generation: int) -> Optional[Admission]:
        """
        Despacha el lote en orden. Devuelve la Admission que bloqueó
        (las entradas restantes ya volvieron a PENDING) o None.
        """
        dispatched: list[asyncio.Task] = []
        blocked: Optional[Admission] = None

        for index, entry in enumerate(batch):
            await self._wait_for_slot()
            if not self._is_current(generation):
                break

            # Una pausa puede llegar mientras se espera hueco
            if self._paused:
                self._queue.requeue(batch[index:])
                break

            tokens    = entry.unit.estimated_tokens
            admission = self._limiter.can_admit(tokens)

            if admission.is_permanent:
                self._fail(entry, QuotaExhausted(entry.unit, tokens, self._limiter.tpm_limit))
                continue

            if not admission.allowed:
                requeued = self._queue.requeue(batch[index:])
                logger.info(
                    "Límite %s alcanzado: %d unidades reprogramadas, espera %.1fs",
                    admission.reason, requeued, admission.wait_ms / 1000,
                )
                blocked = admission
                break

            # Sin await entre can_admit y record
            self._limiter.record(tokens)
            task = asyncio.create_task(self._translate(entry, generation))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            dispatched.append(task)
            logger.debug("Despachada %s (prioridad %d, intento %d)", entry.id, entry.priority, entry.attempt)

        if dispatched:
            # asyncio.wait no cancela las tareas si este bucle es cancelado
            await asyncio.wait(dispatched)
        return blocked

    async def _wait_for_slot(self) -> None:
        while len(self._in_flight) >= self._max_concurrent:
            await asyncio.wait(set(self._in_flight), return_when=asyncio.FIRST_COMPLETED)

    def _next_delay(self, blocked: Optional[Admission]) -> float:
        if blocked is None:
            return self._inter_batch_s

        head = self._queue.peek()
        if head is None:
            return self._inter_batch_s

        admission = self._limiter.can_admit(head.unit.estimated_tokens)
        if admission.allowed or admission.is_permanent:
            return self._inter_batch_s
        return max(admission.wait_ms / 1000, self._inter_batch_s)

    # ------------------------------------------------------------------
    # Por unidad
    # ------------------------------------------------------------------

    async def _translate(self, entry: QueueEntry, generation: int) -> None:
        unit = entry.unit
        try:
            result = await self._translator.translate(unit.text, self._target_language)
        except Exception as e:
            if not self._is_current(generation):
                logger.debug("Fallo tardío descartado para %s: %s", unit.id, e)
                return
            self._fail(entry, TranslationFailure(unit, e))
            return

        if not self._is_current(generation):
            logger.debug("Resultado tardío descartado para %s", unit.id)
            return

        if not self._queue.mark_completed(unit.id):
            return
        self._completed += 1

        if self._renderer is not None:
            try:
                self._renderer.render(unit, result.translated_text)
            except Exception:
                logger.exception("El renderer falló para %s", unit.id)

        self._emit_progress(unit)

    def _fail(self, entry: QueueEntry, error: SchedulerError) -> None:
        unit = entry.unit
        if not self._queue.mark_failed(unit.id, str(error)):
            return
        self._failed += 1

        if isinstance(error, QuotaExhausted):
            logger.error("Unidad %s nunca admisible: %s", unit.id, error)
        else:
            logger.warning("Error en unidad %s: %s", unit.id, error)

        if self._renderer is not None:
            try:
                self._renderer.render_error(unit, str(error))
            except Exception:
                logger.exception("El renderer no pudo mostrar el error de %s", unit.id)

        self._emit(self.on_error, error, unit)

    # ------------------------------------------------------------------
    # Eventos
    # ------------------------------------------------------------------

    def _emit_progress(self, unit: TranslatableUnit) -> None:
        current = self._completed + self._failed
        total   = current + self._queue.size()
        percentage = round(current / total * 100) if total else 0
        self._emit(
            self.on_progress,
            Progress(current=current, total=total, percentage=percentage, current_unit=unit),
        )

    def _finish_run(self) -> None:
        self._state = DispatcherState.IDLE
        self._task  = None
        # Una pausa pendiente no sobrevive al final de la ejecución
        self._paused = False
        self._resume.set()
        logger.info(
            "Cola completada: %d traducidas, %d fallidas",
            self._completed, self._failed,
        )
        self._idle.set()
        self._emit(self.on_complete)

    @staticmethod
    def _emit(listener: Optional[Callable], *args) -> None:
        if listener is None:
            return
        try:
            listener(*args)
        except Exception:
            # Un listener roto no debe parar el bucle
            logger.exception("Listener %r lanzó una excepción", listener)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation
