# scheduler/queue.py
import bisect
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ventana.scheduler.models import EntryState, QueueEntry, TranslatableUnit
from ventana.scheduler.ranker import PriorityRanker

logger = logging.getLogger(__name__)

# Los terminales se conservan un rato para responder a duplicados tardíos
_DEFAULT_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class QueueStats:
    pending:    int
    dispatched: int
    completed:  int
    failed:     int


class TranslationQueue:
    """
    Cola con deduplicación por hash del texto normalizado.

    Invariante: un hash → como mucho una entrada viva (PENDING o DISPATCHED).
    El índice es de un solo dueño (el event loop); ninguna operación
    suspende, así que no hace falta lock.
    """

    def __init__(
        self,
        ranker:        Optional[PriorityRanker] = None,
        clock:         Callable[[], float] = time.time,
        grace_seconds: float = _DEFAULT_GRACE_SECONDS,
    ):
        self._ranker        = ranker or PriorityRanker()
        self._clock         = clock
        self._grace_seconds = grace_seconds

        self._entries: dict[str, QueueEntry] = {}
        # (sort_key, seq, id) ordenado, solo entradas PENDING
        self._ready:   list[tuple] = []
        self._seq:     dict[str, int] = {}
        self._counter  = itertools.count()

    # ------------------------------------------------------------------
    # Entrada
    # ------------------------------------------------------------------

    def enqueue(self, unit: TranslatableUnit) -> bool:
        """
        True si la unidad entró a la cola.
        False si es inválida o si ya hay una entrada viva con el mismo texto.
        Nunca lanza.
        """
        if not _is_valid_unit(unit):
            logger.debug("Unidad rechazada en enqueue: %r", unit)
            return False

        self._purge_expired()

        previous = self._entries.get(unit.id)
        if previous is not None and previous.state.is_live:
            logger.debug("Unidad %s ya en cola (%s), saltando", unit.id, previous.state.value)
            return False

        # Un terminal dentro del periodo de gracia → reintento explícito
        attempt = previous.attempt + 1 if previous is not None else 0

        priority = self._ranker.rank(unit)
        entry = QueueEntry(
            unit        = unit,
            priority    = priority,
            enqueued_at = self._clock(),
            attempt     = attempt,
        )
        self._entries[unit.id] = entry
        self._seq[unit.id]     = next(self._counter)
        self._push_ready(entry)
        return True

    # ------------------------------------------------------------------
    # Salida
    # ------------------------------------------------------------------

    def dequeue_batch(self, n: int) -> list[QueueEntry]:
        """
        Hasta n entradas PENDING en orden de prioridad, ya en DISPATCHED.
        Es síncrono: ningún enqueue puede intercalarse a mitad del lote.
        """
        if n <= 0:
            return []

        taken, self._ready = self._ready[:n], self._ready[n:]
        batch: list[QueueEntry] = []
        for _, _, entry_id in taken:
            entry = self._entries[entry_id]
            entry.state = EntryState.DISPATCHED
            batch.append(entry)
        return batch

    def requeue(self, entries: Iterable[QueueEntry]) -> int:
        """
        Devuelve entradas DISPATCHED a PENDING con su prioridad original.
        Lo usa el Dispatcher cuando el rate limiter bloquea a mitad de lote.
        """
        count = 0
        for entry in entries:
            current = self._entries.get(entry.id)
            if current is not entry or entry.state != EntryState.DISPATCHED:
                continue
            entry.state = EntryState.PENDING
            self._push_ready(entry)
            count += 1
        return count

    def peek(self) -> Optional[QueueEntry]:
        if not self._ready:
            return None
        return self._entries[self._ready[0][2]]

    # ------------------------------------------------------------------
    # Transiciones terminales (idempotentes)
    # ------------------------------------------------------------------

    def mark_completed(self, entry_id: str) -> bool:
        return self._finish(entry_id, EntryState.COMPLETED, None)

    def mark_failed(self, entry_id: str, reason: str) -> bool:
        return self._finish(entry_id, EntryState.FAILED, reason)

    def _finish(self, entry_id: str, state: EntryState, reason: Optional[str]) -> bool:
        self._purge_expired()
        entry = self._entries.get(entry_id)
        if entry is None or not entry.state.is_live:
            return False

        if entry.state == EntryState.PENDING:
            self._remove_ready(entry_id)

        entry.state       = state
        entry.error       = reason
        entry.finished_at = self._clock()
        return True

    # ------------------------------------------------------------------
    # Observabilidad
    # ------------------------------------------------------------------

    def get(self, entry_id: str) -> Optional[QueueEntry]:
        return self._entries.get(entry_id)

    def size(self) -> int:
        """Entradas vivas: PENDING + DISPATCHED."""
        self._purge_expired()
        return sum(1 for e in self._entries.values() if e.state.is_live)

    def pending_count(self) -> int:
        return len(self._ready)

    def is_empty(self) -> bool:
        return self.size() == 0

    def stats(self) -> QueueStats:
        self._purge_expired()
        counts = {state: 0 for state in EntryState}
        for entry in self._entries.values():
            counts[entry.state] += 1
        return QueueStats(
            pending    = counts[EntryState.PENDING],
            dispatched = counts[EntryState.DISPATCHED],
            completed  = counts[EntryState.COMPLETED],
            failed     = counts[EntryState.FAILED],
        )

    def clear(self) -> None:
        self._entries.clear()
        self._ready.clear()
        self._seq.clear()

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _push_ready(self, entry: QueueEntry) -> None:
        key = self._ranker.sort_key(entry.unit, entry.priority)
        bisect.insort(self._ready, (key, self._seq[entry.id], entry.id))

    def _remove_ready(self, entry_id: str) -> None:
        self._ready = [item for item in self._ready if item[2] != entry_id]

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [
            entry_id
            for entry_id, entry in self._entries.items()
            if not entry.state.is_live
            and entry.finished_at is not None
            and now - entry.finished_at >= self._grace_seconds
        ]
        for entry_id in expired:
            del self._entries[entry_id]
            self._seq.pop(entry_id, None)


def _is_valid_unit(unit) -> bool:
    if not isinstance(unit, TranslatableUnit):
        return False
    if not isinstance(unit.text, str) or unit.length_chars == 0:
        return False
    return bool(unit.text.strip())
